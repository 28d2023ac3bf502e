"""Tests for the S3 helpers and the S3 manifest store, using botocore's Stubber."""

import io
import json
import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from olist_bi.errors import PublishError
from olist_bi.publisher import S3ManifestStore, manifest_store_for, LocalManifestStore
from olist_bi.utils.s3_utils import (
    is_s3_path,
    split_s3_path,
    delete_s3_prefix,
    check_path_exists,
)


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


class TestS3Paths:
    """Tests for S3 path helpers."""

    def test_is_s3_path(self):
        assert is_s3_path("s3://bucket/key")
        assert is_s3_path("s3a://bucket/key")
        assert not is_s3_path("/data/raw")

    def test_split_s3_path(self):
        assert split_s3_path("s3://bucket/bi/published/") == ("bucket", "bi/published")
        assert split_s3_path("s3://bucket") == ("bucket", "")

    def test_store_selection(self):
        assert isinstance(manifest_store_for("data/published"), LocalManifestStore)


class TestS3Objects:
    """Tests for listing and deleting objects."""

    def test_check_path_exists(self, s3_client):
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "list_objects_v2",
                {"KeyCount": 0},
                {"Bucket": "bucket", "Prefix": "raw/orders/", "MaxKeys": 1},
            )
            assert not check_path_exists("bucket", "raw/orders/", client=s3_client)

    def test_delete_prefix(self, s3_client):
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "list_objects_v2",
                {"Contents": [{"Key": "bi/A/run_id=1/part-0.parquet"},
                              {"Key": "bi/A/run_id=1/_SUCCESS"}]},
                {"Bucket": "bucket", "Prefix": "bi/A/run_id=1/"},
            )
            stubber.add_response(
                "delete_objects",
                {},
                {"Bucket": "bucket", "Delete": {"Objects": [
                    {"Key": "bi/A/run_id=1/part-0.parquet"},
                    {"Key": "bi/A/run_id=1/_SUCCESS"},
                ]}},
            )

            assert delete_s3_prefix("bucket", "bi/A/run_id=1/", client=s3_client) == 2


class TestS3ManifestStore:
    """Tests for the S3 manifest and lock."""

    def test_paths(self, s3_client):
        store = S3ManifestStore("s3://bucket/bi/", client=s3_client)

        assert store.version_path("SellerScore", "r1") == "s3://bucket/bi/SellerScore/run_id=r1"
        assert store.manifest_path == "s3://bucket/bi/_manifest.json"

    def test_read_manifest(self, s3_client):
        body = json.dumps({"run_id": "r1"}).encode("utf-8")
        store = S3ManifestStore("s3://bucket/bi", client=s3_client)

        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "get_object",
                {"Body": StreamingBody(io.BytesIO(body), len(body))},
                {"Bucket": "bucket", "Key": "bi/_manifest.json"},
            )
            assert store.read() == {"run_id": "r1"}

    def test_read_missing_manifest(self, s3_client):
        store = S3ManifestStore("s3://bucket/bi", client=s3_client)

        with Stubber(s3_client) as stubber:
            stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
            assert store.read() is None

    def test_lock_held(self, s3_client):
        store = S3ManifestStore("s3://bucket/bi", client=s3_client)

        with Stubber(s3_client) as stubber:
            stubber.add_client_error(
                "put_object", service_error_code="PreconditionFailed", http_status_code=412
            )
            with pytest.raises(PublishError):
                store.acquire_lock("r2")
