"""Persisted identity of the cluster.

The state file is the only state that survives between separate invocations of the commands.
It records the cluster ID and the containers the cluster is made of, so a later invocation can
find out whether a cluster is running, and destroy it.

There is a single active cluster per environment: the state file lives at a well-known location
(`<state dir>/minimesos.state`) and saving a new identity overwrites the previous one.
"""

import dataclasses
import json
import logging
import pathlib as pl
import typing as tp

import filelock

from minimesos.cluster_management import errors
from minimesos.utils import configuration
from minimesos.utils import helpers
from minimesos.utils import locking

LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, order=True)
class Member:
    role: str
    container_id: str


@dataclasses.dataclass(frozen=True)
class ClusterIdentity:
    cluster_id: str
    members: tuple[Member, ...] = ()
    # Where the master state is served, as seen from the host that created the cluster
    master_url: str = ""

    def with_member(self, role: str, container_id: str) -> "ClusterIdentity":
        """Return a copy of the identity with a new member appended."""
        member = Member(role=role, container_id=container_id)
        return dataclasses.replace(self, members=(*self.members, member))

    @property
    def container_ids(self) -> list[str]:
        return [m.container_id for m in self.members]

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "members": [dataclasses.asdict(m) for m in self.members],
            "master_url": self.master_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClusterIdentity":
        members = tuple(
            Member(role=str(m["role"]), container_id=str(m["container_id"]))
            for m in data.get("members") or ()
        )
        return cls(
            cluster_id=str(data["cluster_id"]),
            members=members,
            master_url=str(data.get("master_url") or ""),
        )


class ClusterStateStore:
    """Save, load and clear the persisted cluster identity."""

    def __init__(self, state_dir: pl.Path | None = None) -> None:
        self.state_dir = pl.Path(state_dir or configuration.STATE_DIR)
        self.state_file = self.state_dir / configuration.STATE_FILE_NAME

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.state_file}>"

    def _read(self) -> ClusterIdentity | None:
        try:
            with open(self.state_file, encoding="utf-8") as in_fp:
                data = json.load(in_fp)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            msg = f"Cannot read cluster state file '{self.state_file}': {exc}"
            raise errors.StorageError(msg) from exc

        try:
            return ClusterIdentity.from_dict(data)
        except (KeyError, TypeError, AttributeError) as exc:
            msg = f"Malformed cluster state file '{self.state_file}': {exc!r}"
            raise errors.StorageError(msg) from exc

    def _write(self, identity: ClusterIdentity) -> None:
        try:
            helpers.write_json(out_file=self.state_file, content=identity.to_dict())
        except OSError as exc:
            msg = f"Cannot write cluster state file '{self.state_file}': {exc}"
            raise errors.StorageError(msg) from exc

    def _lock(self) -> filelock.FileLock:
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Cannot create state directory '{self.state_dir}': {exc}"
            raise errors.StorageError(msg) from exc
        return locking.state_lock(self.state_file)

    def save(self, identity: ClusterIdentity) -> None:
        """Persist the identity, overwriting any previously saved one."""
        with self._lock():
            self._write(identity)
        LOGGER.debug(f"Saved state of cluster {identity.cluster_id} to '{self.state_file}'.")

    def load(self) -> ClusterIdentity | None:
        """Return the persisted identity, or `None` when no cluster exists."""
        if not self.state_file.exists():
            return None
        return self._read()

    def _update(
        self, update_func: tp.Callable[[ClusterIdentity], ClusterIdentity], *, what: str
    ) -> ClusterIdentity:
        with self._lock():
            identity = self._read()
            if identity is None:
                msg = f"No cluster state to add {what} to."
                raise errors.NotFoundError(msg)
            identity = update_func(identity)
            self._write(identity)
        return identity

    def add_member(self, role: str, container_id: str) -> ClusterIdentity:
        """Append a member to the persisted identity and return the updated identity."""
        return self._update(
            lambda i: i.with_member(role=role, container_id=container_id),
            what=f"container {container_id}",
        )

    def set_master_url(self, master_url: str) -> ClusterIdentity:
        """Record the master URL in the persisted identity and return the updated identity."""
        return self._update(
            lambda i: dataclasses.replace(i, master_url=master_url),
            what=f"master URL '{master_url}'",
        )

    def clear(self) -> None:
        """Remove the persisted identity. Clearing a non-existent identity is not an error."""
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as exc:
            msg = f"Cannot remove cluster state file '{self.state_file}': {exc}"
            raise errors.StorageError(msg) from exc
