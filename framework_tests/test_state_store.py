import pytest

from minimesos.cluster_management import errors
from minimesos.cluster_management import state_store


def test_empty(store: state_store.ClusterStateStore):
    assert store.load() is None


def test_save_load(store: state_store.ClusterStateStore):
    identity = state_store.ClusterIdentity(
        cluster_id="201015-101010123-abcd",
        members=(
            state_store.Member(role="zookeeper", container_id="c1"),
            state_store.Member(role="master", container_id="c2"),
        ),
    )
    store.save(identity)

    assert store.load() == identity
    assert store.state_file.name == "minimesos.state"


def test_save_overwrites(store: state_store.ClusterStateStore):
    store.save(state_store.ClusterIdentity(cluster_id="first"))
    store.save(state_store.ClusterIdentity(cluster_id="second"))
    loaded = store.load()
    assert loaded
    assert loaded.cluster_id == "second"


def test_no_partial_files(store: state_store.ClusterStateStore):
    store.save(state_store.ClusterIdentity(cluster_id="abc"))
    leftovers = [p for p in store.state_dir.iterdir() if p.name.startswith(".minimesos.state.")]
    assert not leftovers


def test_add_member(store: state_store.ClusterStateStore):
    store.save(state_store.ClusterIdentity(cluster_id="abc"))
    store.add_member(role="zookeeper", container_id="c1")
    updated = store.add_member(role="master", container_id="c2")

    assert updated.container_ids == ["c1", "c2"]
    assert store.load() == updated


def test_add_member_no_identity(store: state_store.ClusterStateStore):
    with pytest.raises(errors.NotFoundError):
        store.add_member(role="master", container_id="c1")


def test_clear(store: state_store.ClusterStateStore):
    store.save(state_store.ClusterIdentity(cluster_id="abc"))
    store.clear()
    assert store.load() is None

    # Clearing again is not an error
    store.clear()
    assert store.load() is None


@pytest.mark.parametrize(
    "content", ("{not json", '{"members": []}', '{"cluster_id": "abc", "members": [{}]}')
)
def test_malformed_file(store: state_store.ClusterStateStore, content: str):
    store.state_dir.mkdir(parents=True)
    store.state_file.write_text(content, encoding="utf-8")
    with pytest.raises(errors.StorageError):
        store.load()


def test_set_master_url(store: state_store.ClusterStateStore):
    store.save(state_store.ClusterIdentity(cluster_id="abc"))
    store.add_member(role="master", container_id="c1")
    updated = store.set_master_url("http://127.0.0.1:5055")

    assert updated.master_url == "http://127.0.0.1:5055"
    assert updated.container_ids == ["c1"]
    assert store.load() == updated


def test_set_master_url_no_identity(store: state_store.ClusterStateStore):
    with pytest.raises(errors.NotFoundError):
        store.set_master_url("http://127.0.0.1:5050")


def test_load_without_master_url(store: state_store.ClusterStateStore):
    store.state_dir.mkdir(parents=True)
    store.state_file.write_text(
        '{"cluster_id": "abc", "members": [{"role": "master", "container_id": "c1"}]}',
        encoding="utf-8",
    )
    identity = store.load()
    assert identity
    assert identity.master_url == ""
    assert identity.container_ids == ["c1"]
