"""BaseService: operation timing goes to Prometheus only."""

from unittest.mock import MagicMock

import pytest

from agenda.core.exceptions import NotFoundException
from agenda.monitoring.prometheus_metrics import REGISTRY
from agenda.services.base import BaseService


class _LookupService(BaseService):
    @BaseService.measure_operation("lookup")
    def lookup(self, found: bool) -> str:
        if not found:
            raise NotFoundException("missing")
        return "ok"


def _count(status):
    value = REGISTRY.get_sample_value(
        "agenda_service_operations_total",
        {"service": "_LookupService", "operation": "lookup", "status": status},
    )
    return value or 0.0


def test_measured_operation_records_success_and_error():
    service = _LookupService(MagicMock())
    successes, errors = _count("success"), _count("error")

    assert service.lookup(True) == "ok"
    with pytest.raises(NotFoundException):
        service.lookup(False)

    assert _count("success") == successes + 1
    assert _count("error") == errors + 1
    assert (
        REGISTRY.get_sample_value(
            "agenda_errors_total",
            {
                "service": "_LookupService",
                "operation": "lookup",
                "error_type": "NotFoundException",
            },
        )
        >= 1
    )


def test_metrics_failure_does_not_break_the_operation(monkeypatch):
    from agenda.services import base

    monkeypatch.setattr(
        base.prometheus_metrics,
        "record_service_operation",
        MagicMock(side_effect=RuntimeError("registry down")),
    )

    assert _LookupService(MagicMock()).lookup(True) == "ok"
