import pytest
from datetime import datetime, timedelta, timezone
from botocore.exceptions import ClientError

from entry_cleanup.config import Settings
from entry_cleanup.utils.s3_service import S3Service

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def client_error(operation):
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, operation)


class FakeS3Client:
    """In-memory stand-in for the parts of the boto3 S3 client the sweepers use.

    Continuation tokens are the last key of the previous page, so deleting
    objects between pages does not shift the listing.
    """

    def __init__(self, page_size=1000):
        self.page_size = page_size
        self.buckets = {}
        self.calls = []
        self.fail_list_buckets = set()
        # Number of listing calls allowed to succeed before every later one fails
        self.fail_list_after = None
        self.fail_delete_buckets = set()
        self.error_keys = set()

    def put(self, bucket, key, last_modified=NOW):
        self.buckets.setdefault(bucket, {})[key] = last_modified

    def keys(self, bucket, prefix=""):
        return sorted(k for k in self.buckets.get(bucket, {}) if k.startswith(prefix))

    def calls_for(self, operation):
        return [params for name, params in self.calls if name == operation]

    def list_objects_v2(self, Bucket, Prefix, ContinuationToken=None):
        self.calls.append(("list_objects_v2", {"Bucket": Bucket, "Prefix": Prefix, "ContinuationToken": ContinuationToken}))
        if Bucket in self.fail_list_buckets:
            raise client_error("ListObjectsV2")
        if self.fail_list_after is not None and len(self.calls_for("list_objects_v2")) > self.fail_list_after:
            raise client_error("ListObjectsV2")

        keys = self.keys(Bucket, Prefix)
        if ContinuationToken is not None:
            keys = [k for k in keys if k > ContinuationToken]
        page = keys[:self.page_size]

        response = {"KeyCount": len(page), "IsTruncated": len(keys) > len(page)}
        if page:
            response["Contents"] = [
                {"Key": k, "LastModified": self.buckets[Bucket][k], "Size": 1} for k in page
            ]
        if response["IsTruncated"]:
            response["NextContinuationToken"] = page[-1]
        return response

    def delete_objects(self, Bucket, Delete):
        self.calls.append(("delete_objects", {"Bucket": Bucket, "Delete": Delete}))
        if Bucket in self.fail_delete_buckets:
            raise client_error("DeleteObjects")

        errors = []
        for obj in Delete["Objects"]:
            key = obj["Key"]
            if key in self.error_keys:
                errors.append({"Key": key, "Code": "AccessDenied", "Message": "Access Denied"})
                continue
            self.buckets.get(Bucket, {}).pop(key, None)
        response = {}
        if errors:
            response["Errors"] = errors
        return response

    def get_paginator(self, operation_name):
        assert operation_name == "list_objects_v2"
        return FakeListObjectsPaginator(self)


class FakeListObjectsPaginator:
    """Drives list_objects_v2 the way the botocore paginator does, one request per page"""

    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket, Prefix):
        token = None
        while True:
            page = self.client.list_objects_v2(Bucket=Bucket, Prefix=Prefix, ContinuationToken=token)
            yield page
            if not page.get("IsTruncated"):
                return
            token = page["NextContinuationToken"]


@pytest.fixture
def settings():
    return Settings(region="us-east-1", orphan_max_age=timedelta(hours=24))


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def s3_service(settings, fake_s3):
    return S3Service(settings, client=fake_s3)
