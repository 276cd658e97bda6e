"""S3-compatible bucket backend.

Works against AWS S3 and S3-compatible services such as Cloudflare R2 or
MinIO.  Credentials are read from environment variables so they never appear
in config files; when neither variable is set, boto3's default credential
chain (instance profile, ~/.aws, ...) is used instead.
"""

import io

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
)

from certcache.config import get_env_var_name, get_secret
from certcache.errors import (
    BackendUnavailableError,
    BucketAlreadyOwnedError,
    ObjectNotFoundError,
)

ACCESS_KEY_ENV = get_env_var_name("access_key_id")
SECRET_KEY_ENV = get_env_var_name("secret_access_key")

NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")

# Regions in which CreateBucket must not carry a LocationConstraint.
_DEFAULT_REGIONS = ("", "us-east-1", "auto")

_UNREACHABLE = (EndpointConnectionError, ConnectTimeoutError, NoCredentialsError)


def error_code(exc: ClientError) -> str:
    """Return the service error code carried by a ClientError."""
    return str(exc.response.get("Error", {}).get("Code", ""))


def _is_not_found(exc: ClientError) -> bool:
    return error_code(exc) in NOT_FOUND_CODES


class S3ObjectWriter:
    """Buffers a payload and commits it with a single PutObject on close."""

    def __init__(self, client, bucket: str, key: str):
        self._client = client
        self._bucket = bucket
        self._key = key
        self._buffer = io.BytesIO()
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError(f"write to closed object writer: {self._key}")
        return self._buffer.write(data)

    def close(self) -> None:
        if self.closed:
            return
        self._client.put_object(
            Bucket=self._bucket, Key=self._key, Body=self._buffer.getvalue()
        )
        self.closed = True


class S3Bucket:
    """Handle to one bucket in an S3-compatible store.

    Attributes:
        name: Bucket name
        region: Region the bucket is created in ("" for the client default)
    """

    def __init__(self, client, name: str, region: str = ""):
        """Wrap an existing boto3 S3 client.

        Args:
            client: boto3 ``s3`` client
            name: Bucket name
            region: Region used for bucket creation
        """
        self._client = client
        self.name = name
        self.region = region

    @classmethod
    def connect(
        cls,
        name: str,
        endpoint_url: str = "",
        region: str = "",
    ) -> "S3Bucket":
        """Build a boto3 client and return a handle to *name*.

        Args:
            name: Bucket name
            endpoint_url: Custom endpoint for S3-compatible services ("" for AWS)
            region: Region name ("" for the boto3 default)

        Returns:
            S3Bucket bound to a fresh client

        Raises:
            ValueError: If only one of the two credential variables is set
            BackendUnavailableError: If botocore cannot build the client
        """
        access_key = get_secret("access_key_id")
        secret_key = get_secret("secret_access_key")

        if bool(access_key) != bool(secret_key):
            raise ValueError(
                "S3 credentials incomplete. "
                f"Set both {ACCESS_KEY_ENV} and {SECRET_KEY_ENV}, or neither."
            )

        try:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url or None,
                aws_access_key_id=access_key or None,
                aws_secret_access_key=secret_key or None,
                region_name=region or None,
            )
        except BotoCoreError as e:
            raise BackendUnavailableError(f"Failed to create S3 client: {e}", e) from e

        return cls(client, name, region=region)

    def open_reader(self, key: str):
        """Open the object for reading.

        Returns:
            The streaming body of the object; the caller closes it

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        try:
            response = self._client.get_object(Bucket=self.name, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key) from e
            raise
        return response["Body"]

    def open_writer(self, key: str) -> S3ObjectWriter:
        return S3ObjectWriter(self._client, self.name, key)

    def delete(self, key: str) -> None:
        """Delete the object.

        S3 reports success for DeleteObject on a missing key, so existence is
        checked first with HeadObject.

        Raises:
            ObjectNotFoundError: If the object does not exist
        """
        try:
            self._client.head_object(Bucket=self.name, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(key) from e
            raise
        self._client.delete_object(Bucket=self.name, Key=key)

    def create(self, owner: str) -> None:
        """Create the bucket.

        Args:
            owner: Account ID expected to own the bucket ("" skips the check)

        Raises:
            BucketAlreadyOwnedError: If the caller already owns the bucket
            BackendUnavailableError: If the service cannot be reached
            ClientError: For any other service-side failure
        """
        params = {"Bucket": self.name}
        if self.region not in _DEFAULT_REGIONS:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        try:
            try:
                self._client.create_bucket(**params)
            except ClientError as e:
                if error_code(e) == "BucketAlreadyOwnedByYou":
                    self._check_owner(owner)
                    raise BucketAlreadyOwnedError(self.name) from e
                raise
            self._check_owner(owner)
        except _UNREACHABLE as e:
            raise BackendUnavailableError(f"S3 backend unreachable: {e}", e) from e

    def _check_owner(self, owner: str) -> None:
        if owner:
            self._client.head_bucket(Bucket=self.name, ExpectedBucketOwner=owner)
