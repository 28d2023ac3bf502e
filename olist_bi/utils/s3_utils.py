"""Utility functions for S3 operations."""

import boto3
from typing import List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


def get_s3_client(region: Optional[str] = None):
    """
    Get an S3 client.
    
    Credentials come from the usual boto3 chain (IAM role, environment,
    ~/.aws/credentials).
    
    Args:
        region: AWS region, or None for the configured default
        
    Returns:
        boto3 S3 client
    """
    return boto3.client('s3', region_name=region)


def is_s3_path(path: str) -> bool:
    """True for s3:// and s3a:// URIs."""
    return path.startswith(("s3://", "s3a://"))


def split_s3_path(path: str) -> Tuple[str, str]:
    """
    Split an S3 URI into bucket and key.
    
    Args:
        path: URI such as s3://bucket/prefix/object
        
    Returns:
        (bucket, key) tuple; key has no leading slash
    """
    without_scheme = path.split("://", 1)[1]
    bucket, _, key = without_scheme.partition("/")
    return bucket, key.strip("/")


def list_s3_objects(
    bucket: str,
    prefix: str,
    suffix: Optional[str] = None,
    client=None
) -> List[str]:
    """
    List objects in an S3 bucket with optional filtering.
    
    Args:
        bucket: S3 bucket name
        prefix: Prefix to filter objects
        suffix: Optional suffix filter (e.g., '.parquet')
        client: Optional S3 client to reuse
        
    Returns:
        List of S3 keys
    """
    s3 = client or get_s3_client()
    
    objects = []
    paginator = s3.get_paginator('list_objects_v2')
    
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        if 'Contents' in page:
            for obj in page['Contents']:
                key = obj['Key']
                if suffix is None or key.endswith(suffix):
                    objects.append(key)
    
    return objects


def delete_s3_prefix(bucket: str, prefix: str, client=None) -> int:
    """
    Delete every object under a prefix.
    
    Args:
        bucket: S3 bucket name
        prefix: Prefix whose objects are removed
        client: Optional S3 client to reuse
        
    Returns:
        Number of objects deleted
    """
    s3 = client or get_s3_client()
    keys = list_s3_objects(bucket, prefix, client=s3)
    
    # delete_objects accepts at most 1000 keys per call
    for i in range(0, len(keys), 1000):
        batch = [{'Key': k} for k in keys[i:i + 1000]]
        s3.delete_objects(Bucket=bucket, Delete={'Objects': batch})
    
    logger.info(f"Deleted {len(keys)} objects under s3://{bucket}/{prefix}")
    return len(keys)


def check_path_exists(bucket: str, prefix: str, client=None) -> bool:
    """
    Check if an S3 path exists (has any objects).
    
    Args:
        bucket: S3 bucket name
        prefix: Prefix to check
        client: Optional S3 client to reuse
        
    Returns:
        True if any objects exist with the prefix
    """
    s3 = client or get_s3_client()
    response = s3.list_objects_v2(Bucket=bucket, Prefix=prefix, MaxKeys=1)
    return 'Contents' in response
