"""
Publisher: exposes the result tables under stable names for BI tools.

Publication is two-phase:
1. Stage - every table is written to its own versioned location,
   <root>/<Name>/run_id=<run_id>/
2. Commit - a single manifest, <root>/_manifest.json, is replaced in one
   atomic write and points each name at the new version

Readers resolve tables only through the manifest (read_published,
register_views), so they see either the previous complete set or the
new one, never a mix. A failed stage deletes what it wrote and leaves
the manifest alone. Older versions are removed after the commit, keeping
the last `retain_versions` so readers still holding the previous
manifest can finish.

Publication is serialized by a lock object created exclusively at
<root>/_publish.lock.

Roots may be local directories or s3:// URIs.
"""

import json
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from botocore.exceptions import ClientError
from pyspark.sql import DataFrame, SparkSession

from .errors import PublishError
from .utils.spark_utils import write_parquet
from .utils.s3_utils import (
    get_s3_client, is_s3_path, split_s3_path, delete_s3_prefix,
)

logger = logging.getLogger(__name__)

PUBLISHED_TABLES = (
    "CustomerRFM",
    "CohortRetention",
    "TopProducts",
    "BasketPairs",
    "SellerScore",
)

MANIFEST_NAME = "_manifest.json"
LOCK_NAME = "_publish.lock"
VIEW_PREFIX = "vw"


# =============================================================================
# MANIFEST STORES
# =============================================================================

class ManifestStore:
    """Storage operations the publisher needs from its root location."""

    def __init__(self, root: str):
        self.root = root.rstrip("/")

    def version_path(self, name: str, run_id: str) -> str:
        return f"{self.root}/{name}/run_id={run_id}"

    @property
    def manifest_path(self) -> str:
        return f"{self.root}/{MANIFEST_NAME}"

    def read(self) -> Optional[dict]:
        raise NotImplementedError

    def write(self, manifest: dict) -> None:
        raise NotImplementedError

    def acquire_lock(self, owner: str) -> None:
        raise NotImplementedError

    def release_lock(self) -> None:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError


class LocalManifestStore(ManifestStore):
    """Manifest and lock on the local filesystem."""

    def read(self) -> Optional[dict]:
        if not os.path.exists(self.manifest_path):
            return None
        with open(self.manifest_path, encoding="utf-8") as f:
            return json.load(f)

    def write(self, manifest: dict) -> None:
        os.makedirs(self.root, exist_ok=True)
        tmp_path = f"{self.manifest_path}.{manifest['run_id']}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        # atomic swap
        os.replace(tmp_path, self.manifest_path)

    def acquire_lock(self, owner: str) -> None:
        os.makedirs(self.root, exist_ok=True)
        lock_path = f"{self.root}/{LOCK_NAME}"
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise PublishError(
                f"Another run is publishing to {self.root} (lock {lock_path} exists)"
            )
        with os.fdopen(fd, "w") as f:
            f.write(owner)

    def release_lock(self) -> None:
        lock_path = f"{self.root}/{LOCK_NAME}"
        if os.path.exists(lock_path):
            os.remove(lock_path)

    def delete(self, path: str) -> None:
        if os.path.exists(path):
            shutil.rmtree(path)


class S3ManifestStore(ManifestStore):
    """
    Manifest and lock in S3.

    A single PutObject is atomic, which makes the manifest swap the
    commit point. The lock uses a conditional write (IfNoneMatch="*").
    """

    def __init__(self, root: str, client=None):
        super().__init__(root)
        self.bucket, self.prefix = split_s3_path(self.root)
        self.client = client or get_s3_client()

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def read(self) -> Optional[dict]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(MANIFEST_NAME))
        except ClientError as e:
            if e.response["Error"]["Code"] in ("NoSuchKey", "404"):
                return None
            raise
        return json.loads(response["Body"].read())

    def write(self, manifest: dict) -> None:
        body = json.dumps(manifest, indent=2, sort_keys=True).encode("utf-8")
        self.client.put_object(
            Bucket=self.bucket,
            Key=self._key(MANIFEST_NAME),
            Body=body,
            ContentType="application/json",
        )

    def acquire_lock(self, owner: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self._key(LOCK_NAME),
                Body=owner.encode("utf-8"),
                IfNoneMatch="*",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in ("PreconditionFailed", "412"):
                raise PublishError(f"Another run is publishing to {self.root}")
            raise

    def release_lock(self) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=self._key(LOCK_NAME))

    def delete(self, path: str) -> None:
        _, prefix = split_s3_path(path)
        delete_s3_prefix(self.bucket, prefix.rstrip("/") + "/", client=self.client)


def manifest_store_for(root: str) -> ManifestStore:
    """Pick the store implementation for a root path."""
    if is_s3_path(root):
        return S3ManifestStore(root)
    return LocalManifestStore(root)


# =============================================================================
# PUBLISHER
# =============================================================================

@dataclass
class PublishReport:
    """What a successful publish replaced."""
    run_id: str
    root: str
    row_counts: Dict[str, int] = field(default_factory=dict)
    removed_versions: List[str] = field(default_factory=list)

    @property
    def published(self) -> List[str]:
        return list(self.row_counts)


class Publisher:
    """
    Atomically replaces the published BI tables under a root location.

    Usage:
        publisher = Publisher(spark, "data/published")
        report = publisher.publish({"CustomerRFM": rfm_df, ...}, run_id)
    """

    def __init__(
        self,
        spark: SparkSession,
        root: str,
        retain_versions: int = 2,
        register_views: bool = True,
        store: Optional[ManifestStore] = None
    ):
        self.spark = spark
        self.root = root.rstrip("/")
        self.retain_versions = retain_versions
        self.views_enabled = register_views
        self.store = store or manifest_store_for(self.root)

    def publish(
        self,
        tables: Dict[str, DataFrame],
        run_id: str,
        metadata: Optional[dict] = None
    ) -> PublishReport:
        """
        Stage every table, then commit them together.

        Args:
            tables: Result DataFrames keyed by published name; must hold
                exactly PUBLISHED_TABLES
            run_id: Identifier of this run, used in version paths
            metadata: Extra JSON-serialisable details stored in the manifest

        Returns:
            PublishReport with per-table row counts

        Raises:
            PublishError: tables are missing, another run holds the lock,
                run_id is already a retained version, or staging / commit
                failed
        """
        missing = [name for name in PUBLISHED_TABLES if name not in tables]
        unknown = [name for name in tables if name not in PUBLISHED_TABLES]
        if missing or unknown:
            raise PublishError(f"Cannot publish: missing {missing}, unknown {unknown}")

        self.store.acquire_lock(run_id)
        try:
            previous = self.store.read() or {}
            # a retained version must never be overwritten or discarded
            if run_id in previous.get("versions", []):
                raise PublishError(
                    f"Run {run_id} is already published under {self.root}"
                )
            row_counts = self._stage(tables, run_id)
            manifest = self._build_manifest(previous, run_id, row_counts, metadata)

            try:
                self.store.write(manifest)
            except Exception as e:
                self._discard(run_id)
                raise PublishError(f"Commit of run {run_id} failed: {e}") from e

            logger.info(f"Committed manifest {self.store.manifest_path} for run {run_id}")
            removed = self._collect_garbage(previous, manifest)
        finally:
            self.store.release_lock()

        if self.views_enabled:
            register_views(self.spark, self.root, store=self.store)

        return PublishReport(run_id=run_id, root=self.root,
                             row_counts=row_counts, removed_versions=removed)

    def _stage(self, tables: Dict[str, DataFrame], run_id: str) -> Dict[str, int]:
        row_counts = {}
        try:
            for name in PUBLISHED_TABLES:
                path = self.store.version_path(name, run_id)
                df = tables[name]
                write_parquet(df, path)
                row_counts[name] = df.count()
                logger.info(f"Staged {name}: {row_counts[name]} rows -> {path}")
        except Exception as e:
            self._discard(run_id)
            raise PublishError(f"Staging of run {run_id} failed: {e}") from e
        return row_counts

    def _discard(self, run_id: str) -> None:
        for name in PUBLISHED_TABLES:
            path = self.store.version_path(name, run_id)
            try:
                self.store.delete(path)
            except Exception as e:
                logger.warning(f"Could not remove staged {path}: {e}")

    def _build_manifest(
        self,
        previous: dict,
        run_id: str,
        row_counts: Dict[str, int],
        metadata: Optional[dict]
    ) -> dict:
        versions = [run_id] + [v for v in previous.get("versions", []) if v != run_id]
        return {
            "run_id": run_id,
            "published_at": datetime.now(timezone.utc).isoformat(),
            "versions": versions[:self.retain_versions],
            "tables": {
                name: {
                    "path": self.store.version_path(name, run_id),
                    "row_count": row_counts[name],
                    "view": f"{VIEW_PREFIX}{name}",
                }
                for name in PUBLISHED_TABLES
            },
            "metadata": metadata or {},
        }

    def _collect_garbage(self, previous: dict, manifest: dict) -> List[str]:
        """Delete versions that fell out of the retention list."""
        kept = set(manifest["versions"])
        expired = [v for v in previous.get("versions", []) if v not in kept]
        for run_id in expired:
            for name in PUBLISHED_TABLES:
                path = self.store.version_path(name, run_id)
                try:
                    self.store.delete(path)
                except Exception as e:
                    # non-fatal after commit
                    logger.warning(f"Could not remove expired version {path}: {e}")
            logger.info(f"Removed expired version {run_id}")
        return expired


# =============================================================================
# READERS
# =============================================================================

def read_manifest(root: str, store: Optional[ManifestStore] = None) -> Optional[dict]:
    """Current manifest under root, or None if nothing was published yet."""
    store = store or manifest_store_for(root)
    return store.read()


def read_published(
    spark: SparkSession,
    root: str,
    name: str,
    store: Optional[ManifestStore] = None
) -> DataFrame:
    """
    Read the currently published version of a table.

    Args:
        spark: SparkSession
        root: Publish root
        name: Published name, e.g. "CustomerRFM"
        store: Optional store, defaults to one matching root

    Returns:
        DataFrame of the published table

    Raises:
        PublishError: nothing is published under that name
    """
    manifest = read_manifest(root, store)
    if not manifest or name not in manifest.get("tables", {}):
        raise PublishError(f"'{name}' is not published under {root}")
    return spark.read.parquet(manifest["tables"][name]["path"])


def register_views(
    spark: SparkSession,
    root: str,
    store: Optional[ManifestStore] = None
) -> List[str]:
    """
    Register every published table as a session view named vw<Name>.

    Args:
        spark: SparkSession
        root: Publish root
        store: Optional store, defaults to one matching root

    Returns:
        Names of the registered views
    """
    manifest = read_manifest(root, store)
    if not manifest:
        return []

    views = []
    for name, entry in manifest["tables"].items():
        view = entry.get("view", f"{VIEW_PREFIX}{name}")
        spark.read.parquet(entry["path"]).createOrReplaceTempView(view)
        views.append(view)

    logger.info(f"Registered views: {', '.join(views)}")
    return views
