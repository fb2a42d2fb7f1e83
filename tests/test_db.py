from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from firetodo.db import FirestoreDocumentStore
from firetodo.firebase_app import get_firebase_app


def make_doc(doc_id, data, exists=True):
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    doc.reference = MagicMock(name=f"ref-{doc_id}")
    return doc


@pytest.fixture
def client():
    client = MagicMock()
    query = client.collection.return_value
    # Chained query builders hand back the same query object
    query.where.return_value = query
    query.order_by.return_value = query
    query.limit.return_value = query
    return client


@pytest.fixture
def fs(client):
    return FirestoreDocumentStore(client)


class TestFirestoreQueries:
    def test_filters_and_descending_order(self, fs, client):
        query = client.collection.return_value
        query.stream.return_value = [make_doc("t1", {"name": "a", "uid": "u1"})]

        with patch("firetodo.db.firestore") as mock_firestore:
            docs = fs.query("todos", [("uid", "u1")], order_by=("createAt", True), limit=5)

        assert docs == [{"id": "t1", "name": "a", "uid": "u1"}]
        client.collection.assert_called_with("todos")
        applied = query.where.call_args.kwargs["filter"]
        assert isinstance(applied, FieldFilter)
        assert (applied.field_path, applied.op_string, applied.value) == ("uid", "==", "u1")
        query.order_by.assert_called_once_with("createAt", direction=mock_firestore.Query.DESCENDING)
        query.limit.assert_called_once_with(5)

    def test_ascending_order_without_filters(self, fs, client):
        query = client.collection.return_value
        query.stream.return_value = []

        with patch("firetodo.db.firestore") as mock_firestore:
            assert fs.query("users", order_by=("name", False)) == []

        query.where.assert_not_called()
        query.order_by.assert_called_once_with("name", direction=mock_firestore.Query.ASCENDING)
        query.limit.assert_not_called()


class TestFirestoreWrites:
    def test_add_returns_store_id_and_drops_id_field(self, fs, client):
        ref = MagicMock()
        ref.id = "new-id"
        client.collection.return_value.add.return_value = (MagicMock(), ref)

        assert fs.add("todos", {"id": "forced", "name": "a"}) == "new-id"
        client.collection.return_value.add.assert_called_once_with({"name": "a"})

    def test_get_missing(self, fs, client):
        client.collection.return_value.document.return_value.get.return_value = make_doc("x", None, exists=False)
        assert fs.get("todos", "x") is None

    def test_update_merges_and_reads_back(self, fs, client):
        ref = client.collection.return_value.document.return_value
        ref.get.return_value = make_doc("t1", {"name": "b", "completed": True})

        assert fs.update("todos", "t1", {"id": "t1", "completed": True}) == {
            "id": "t1",
            "name": "b",
            "completed": True,
        }
        ref.update.assert_called_once_with({"completed": True})

    def test_update_missing_document(self, fs, client):
        ref = client.collection.return_value.document.return_value
        ref.update.side_effect = google_exceptions.NotFound("no document to update")

        assert fs.update("todos", "gone", {"completed": True}) is None
        ref.get.assert_not_called()

    def test_delete(self, fs, client):
        ref = client.collection.return_value.document.return_value
        ref.get.return_value = make_doc("t1", {}, exists=False)
        assert fs.delete("todos", "t1") is False
        ref.delete.assert_not_called()

        ref.get.return_value = make_doc("t1", {})
        assert fs.delete("todos", "t1") is True
        ref.delete.assert_called_once_with()

    @patch("firetodo.db.firestore")
    def test_delete_where_runs_in_one_transaction(self, mock_firestore, fs, client):
        mock_firestore.transactional.side_effect = lambda fn: fn
        docs = [make_doc("a1", {"userId": "u1"}), make_doc("a2", {"userId": "u1"})]
        client.collection.return_value.stream.return_value = docs
        transaction = client.transaction.return_value

        assert fs.delete_where("accounts", [("userId", "u1")]) == 2

        client.transaction.assert_called_once_with()
        assert [c.args[0] for c in transaction.delete.call_args_list] == [d.reference for d in docs]

    def test_delete_where_without_matches(self, fs, client):
        client.collection.return_value.stream.return_value = []
        assert fs.delete_where("accounts", [("userId", "u1")]) == 0
        client.transaction.assert_not_called()


class TestFirestoreSubscriptions:
    def test_snapshots_and_unsubscribe(self, fs, client):
        query = client.collection.return_value
        watch = query.on_snapshot.return_value
        seen = []

        sub = fs.subscribe("todos", [("uid", "u1")], ("createAt", True), seen.append)
        on_snapshot = query.on_snapshot.call_args.args[0]
        on_snapshot([make_doc("t1", {"name": "a"}), make_doc("t2", {"name": "b"})], [], None)

        assert seen == [[{"id": "t1", "name": "a"}, {"id": "t2", "name": "b"}]]

        sub.unsubscribe()
        sub.unsubscribe()
        watch.unsubscribe.assert_called_once_with()
        assert sub.closed


class TestFirebaseApp:
    @patch("firetodo.db.firestore.client")
    def test_store_from_app(self, firestore_client):
        app = MagicMock()
        store = FirestoreDocumentStore.from_app(app)
        firestore_client.assert_called_once_with(app)
        assert isinstance(store, FirestoreDocumentStore)

    @patch("firebase_admin.initialize_app")
    @patch("firebase_admin.get_app")
    def test_existing_app_is_reused(self, get_app, initialize_app, settings):
        assert get_firebase_app(settings) is get_app.return_value
        initialize_app.assert_not_called()

    @patch("firetodo.firebase_app.credentials.Certificate")
    @patch("firebase_admin.initialize_app")
    @patch("firebase_admin.get_app", side_effect=ValueError("no app"))
    def test_service_account_credentials(self, get_app, initialize_app, certificate, settings):
        configured = replace(
            settings,
            firebase_project_id="demo-todo",
            firebase_client_email="svc@demo-todo.iam.gserviceaccount.com",
            firebase_private_key="-----BEGIN-----\nabc\n-----END-----",
        )

        assert get_firebase_app(configured) is initialize_app.return_value

        info = certificate.call_args.args[0]
        assert info["type"] == "service_account"
        assert info["client_email"] == "svc@demo-todo.iam.gserviceaccount.com"
        assert info["private_key"] == "-----BEGIN-----\nabc\n-----END-----"
        initialize_app.assert_called_once_with(certificate.return_value, {"projectId": "demo-todo"})

    @patch("firebase_admin.initialize_app")
    @patch("firebase_admin.get_app", side_effect=ValueError("no app"))
    def test_application_default_credentials(self, get_app, initialize_app, settings):
        configured = replace(
            settings, firebase_project_id="demo-todo", firebase_client_email=None, firebase_private_key=None
        )

        get_firebase_app(configured)

        initialize_app.assert_called_once_with(options={"projectId": "demo-todo"})
