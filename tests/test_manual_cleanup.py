"""过期预占清理脚本测试"""
import pytest
from unittest.mock import Mock, patch

from app.jobs.manual_cleanup import main, run_cleanup
from app.models.inventory_reservations import InventoryReservation, ReservationStatus


@pytest.fixture
def container(session_factory, stock_cache):
    container = Mock()
    container.session.side_effect = session_factory
    container.stock_cache = stock_cache
    container.open.return_value = container
    return container


class TestManualCleanup:
    """manual_cleanup 测试类"""

    def test_dry_run_only_counts(self, container, db_session, make_stock, make_reservation):
        make_stock(9, 10, reserved=3)
        expired = make_reservation(1, 9, 2, expires_in_seconds=-60)
        make_reservation(2, 9, 1, expires_in_seconds=600)

        assert run_cleanup(container, dry_run=True) == 1

        reservation = db_session.get(InventoryReservation, expired.id, populate_existing=True)
        assert reservation.status == ReservationStatus.ACTIVE

    def test_cleanup_in_batches(self, container, make_stock, make_reservation):
        make_stock(9, 10, reserved=3)
        make_reservation(1, 9, 1, expires_in_seconds=-60)
        make_reservation(2, 9, 2, expires_in_seconds=-60)

        assert run_cleanup(container, batch_size=1) == 1
        assert run_cleanup(container, batch_size=1) == 1
        assert run_cleanup(container, batch_size=1) == 0

    def test_main(self, container, capsys):
        with patch("app.jobs.manual_cleanup.ServiceContainer", return_value=container), \
             patch("app.jobs.manual_cleanup.run_cleanup", return_value=3) as mock_run:
            assert main(["--batch-size", "50"]) == 0

        mock_run.assert_called_once_with(container, 50, False)
        container.open.assert_called_once_with(create_tables=False)
        container.close.assert_called_once()
        assert "处理了 3 条记录" in capsys.readouterr().out

    def test_main_failure(self, container):
        with patch("app.jobs.manual_cleanup.ServiceContainer", return_value=container), \
             patch("app.jobs.manual_cleanup.run_cleanup", side_effect=RuntimeError("db down")):
            assert main(["--dry-run"]) == 1

        container.close.assert_called_once()

    def test_main_rejects_bad_batch_size(self):
        with pytest.raises(SystemExit):
            main(["--batch-size", "0"])
