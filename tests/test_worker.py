"""
Tests for Celery tasks, executed in-process.
"""
from datetime import timedelta

from sqlalchemy.exc import OperationalError

from app.services.config_service import config_service
from worker import beat_tasks, tasks
from worker.celery_app import celery_app


def customer_rows(reference_data, email):
    return [
        {
            "email": email,
            "companyName": "ACME",
            "defaultCurrencyId": reference_data["currency_eur"],
            "billingAddressId": reference_data["address"],
        }
    ]


class TestCeleryConfig:
    """Test queue and delivery settings."""

    def test_late_ack_and_routes(self):
        assert celery_app.conf.task_acks_late is True
        assert celery_app.conf.task_reject_on_worker_lost is True
        assert celery_app.conf.task_routes["worker.tasks.process_import_batch"] == {"queue": "ingest"}
        assert "requeue-stale-import-batches" in celery_app.conf.beat_schedule


class TestProcessImportBatchTask:
    """Test worker.tasks.process_import_batch."""

    def test_task_processes_batch(self, monkeypatch, import_service, reference_data):
        view = import_service.schedule_import("customer", customer_rows(reference_data, "a@example.com"))
        monkeypatch.setattr(tasks, "build_import_service", lambda dispatcher=None: import_service)

        result = tasks.process_import_batch.apply(args=[view["id"]])

        assert result.successful()
        assert result.get() == {"status": "success", "batch_id": view["id"]}
        assert import_service.get_import_status(view["id"])["status"] == "completed"

    def test_redelivered_task_is_harmless(self, monkeypatch, import_service, reference_data):
        view = import_service.schedule_import("customer", customer_rows(reference_data, "a@example.com"))
        monkeypatch.setattr(tasks, "build_import_service", lambda dispatcher=None: import_service)

        tasks.process_import_batch.apply(args=[view["id"]])
        result = tasks.process_import_batch.apply(args=[view["id"]])

        assert result.successful()
        assert import_service.get_import_status(view["id"])["summary"]["successfullyImported"] == 1

    def test_database_outage_is_retried(self, monkeypatch):
        calls = []

        def unavailable(batch_id):
            calls.append(batch_id)
            raise OperationalError("UPDATE import_batches", {}, Exception("connection refused"))

        monkeypatch.setattr(tasks, "dispatch_batch", unavailable)

        result = tasks.process_import_batch.apply(args=[7])

        assert not result.successful()
        assert len(calls) > 1
        assert set(calls) == {7}


class TestRequeueBeatTask:
    """Test worker.beat_tasks.requeue_stale_batches."""

    def test_requeues_stale_batches(self, monkeypatch, import_service, batch_store, dispatcher, reference_data):
        view = import_service.schedule_import("customer", customer_rows(reference_data, "a@example.com"))
        batch = batch_store.find_by_id(view["id"])
        batch.created_at = config_service.now() - timedelta(hours=1)
        batch_store.save(batch)
        dispatcher.batch_ids.clear()
        monkeypatch.setattr(beat_tasks, "build_import_service", lambda: import_service)

        result = beat_tasks.requeue_stale_batches.apply().get()

        assert result["status"] == "success"
        assert result["requeued"] == [view["id"]]
        assert dispatcher.batch_ids == [view["id"]]

    def test_database_error_is_reported(self, monkeypatch):
        class BrokenService:
            def requeue_stale_batches(self):
                raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(beat_tasks, "build_import_service", lambda: BrokenService())

        result = beat_tasks.requeue_stale_batches.apply().get()

        assert result["status"] == "error"
        assert "connection refused" in result["error"]
