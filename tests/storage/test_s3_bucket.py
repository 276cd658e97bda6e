"""Tests for the S3 bucket backend."""

import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, ConnectTimeoutError, NoRegionError

from certcache.errors import (
    BackendUnavailableError,
    BucketAlreadyOwnedError,
    ObjectNotFoundError,
)
from certcache.storage.s3 import S3Bucket, S3ObjectWriter


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def mock_s3():
    return MagicMock()


@pytest.fixture
def bucket(mock_s3):
    return S3Bucket(mock_s3, "certs")


class TestConnect:
    """Tests for S3Bucket.connect."""

    @patch("certcache.storage.s3.boto3.client")
    def test_uses_env_credentials(self, mock_boto_client, s3_env):
        bucket = S3Bucket.connect(
            "certs", endpoint_url="https://acct.r2.cloudflarestorage.com", region="auto"
        )

        mock_boto_client.assert_called_once_with(
            "s3",
            endpoint_url="https://acct.r2.cloudflarestorage.com",
            aws_access_key_id="test-access-key",
            aws_secret_access_key="test-secret-key",
            region_name="auto",
        )
        assert bucket.name == "certs"
        assert bucket.region == "auto"

    @patch("certcache.storage.s3.boto3.client")
    def test_falls_back_to_default_chain(self, mock_boto_client):
        """With no credential variables, boto3 resolves credentials itself."""
        S3Bucket.connect("certs")

        mock_boto_client.assert_called_once_with(
            "s3",
            endpoint_url=None,
            aws_access_key_id=None,
            aws_secret_access_key=None,
            region_name=None,
        )

    def test_partial_credentials_raise(self, monkeypatch):
        monkeypatch.setenv("CERTCACHE_SECRET_ACCESS_KEY", "secret")

        with pytest.raises(ValueError, match="S3 credentials incomplete"):
            S3Bucket.connect("certs")

    @patch("certcache.storage.s3.boto3.client")
    def test_botocore_failure_becomes_backend_unavailable(self, mock_boto_client):
        mock_boto_client.side_effect = NoRegionError()

        with pytest.raises(BackendUnavailableError) as exc_info:
            S3Bucket.connect("certs")

        assert isinstance(exc_info.value.cause, NoRegionError)


class TestOpenReader:
    def test_returns_body(self, bucket, mock_s3):
        body = io.BytesIO(b"cert")
        mock_s3.get_object.return_value = {"Body": body}

        assert bucket.open_reader("example.com") is body
        mock_s3.get_object.assert_called_once_with(Bucket="certs", Key="example.com")

    @pytest.mark.parametrize("code", ["NoSuchKey", "404", "NotFound"])
    def test_missing_object_raises_not_found(self, bucket, mock_s3, code):
        mock_s3.get_object.side_effect = client_error(code, "GetObject")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            bucket.open_reader("example.com")

        assert exc_info.value.key == "example.com"

    def test_other_errors_propagate_unchanged(self, bucket, mock_s3):
        error = client_error("AccessDenied", "GetObject")
        mock_s3.get_object.side_effect = error

        with pytest.raises(ClientError) as exc_info:
            bucket.open_reader("example.com")

        assert exc_info.value is error


class TestWriter:
    def test_close_commits_whole_payload(self, bucket, mock_s3):
        writer = bucket.open_writer("example.com")
        writer.write(b"part one, ")
        writer.write(b"part two")

        mock_s3.put_object.assert_not_called()
        writer.close()

        mock_s3.put_object.assert_called_once_with(
            Bucket="certs", Key="example.com", Body=b"part one, part two"
        )

    def test_write_after_close_raises(self, mock_s3):
        writer = S3ObjectWriter(mock_s3, "certs", "example.com")
        writer.close()

        with pytest.raises(ValueError, match="closed"):
            writer.write(b"late")

    def test_close_is_idempotent(self, mock_s3):
        writer = S3ObjectWriter(mock_s3, "certs", "example.com")
        writer.close()
        writer.close()

        assert mock_s3.put_object.call_count == 1

    def test_failed_commit_leaves_writer_open(self, mock_s3):
        mock_s3.put_object.side_effect = client_error("InternalError", "PutObject")
        writer = S3ObjectWriter(mock_s3, "certs", "example.com")

        with pytest.raises(ClientError):
            writer.close()

        assert writer.closed is False


class TestDelete:
    def test_deletes_existing_object(self, bucket, mock_s3):
        bucket.delete("example.com")

        mock_s3.head_object.assert_called_once_with(Bucket="certs", Key="example.com")
        mock_s3.delete_object.assert_called_once_with(Bucket="certs", Key="example.com")

    def test_missing_object_raises_not_found(self, bucket, mock_s3):
        mock_s3.head_object.side_effect = client_error("404", "HeadObject")

        with pytest.raises(ObjectNotFoundError):
            bucket.delete("example.com")

        mock_s3.delete_object.assert_not_called()

    def test_delete_error_propagates_unchanged(self, bucket, mock_s3):
        error = client_error("AccessDenied", "DeleteObject")
        mock_s3.delete_object.side_effect = error

        with pytest.raises(ClientError) as exc_info:
            bucket.delete("example.com")

        assert exc_info.value is error


class TestCreate:
    def test_default_region_sends_no_location(self, bucket, mock_s3):
        bucket.create("")

        mock_s3.create_bucket.assert_called_once_with(Bucket="certs")
        mock_s3.head_bucket.assert_not_called()

    @pytest.mark.parametrize("region", ["us-east-1", "auto"])
    def test_implicit_regions_send_no_location(self, mock_s3, region):
        S3Bucket(mock_s3, "certs", region=region).create("")

        mock_s3.create_bucket.assert_called_once_with(Bucket="certs")

    def test_other_region_sends_location(self, mock_s3):
        S3Bucket(mock_s3, "certs", region="eu-central-1").create("")

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="certs",
            CreateBucketConfiguration={"LocationConstraint": "eu-central-1"},
        )

    def test_owner_is_verified(self, bucket, mock_s3):
        bucket.create("123456789012")

        mock_s3.head_bucket.assert_called_once_with(
            Bucket="certs", ExpectedBucketOwner="123456789012"
        )

    def test_already_owned_by_you(self, bucket, mock_s3):
        mock_s3.create_bucket.side_effect = client_error(
            "BucketAlreadyOwnedByYou", "CreateBucket"
        )

        with pytest.raises(BucketAlreadyOwnedError):
            bucket.create("123456789012")

        mock_s3.head_bucket.assert_called_once()

    def test_owner_mismatch_propagates(self, bucket, mock_s3):
        mock_s3.create_bucket.side_effect = client_error(
            "BucketAlreadyOwnedByYou", "CreateBucket"
        )
        error = client_error("403", "HeadBucket")
        mock_s3.head_bucket.side_effect = error

        with pytest.raises(ClientError) as exc_info:
            bucket.create("999999999999")

        assert exc_info.value is error

    def test_unreachable_raises_backend_unavailable(self, bucket, mock_s3):
        mock_s3.create_bucket.side_effect = ConnectTimeoutError(
            endpoint_url="https://s3.invalid"
        )

        with pytest.raises(BackendUnavailableError):
            bucket.create("")
