import pytest
from pydantic import ValidationError

from backoffice.models.requests import BulkUpdateRequest, LoadStatusUpdate


def test_bulk_update_fields_are_optional():
    request = BulkUpdateRequest()

    assert request.ids is None
    assert request.data is None


def test_bulk_update_rejects_non_list_ids():
    with pytest.raises(ValidationError):
        BulkUpdateRequest(ids="abc", data={"status": "Listed"})


def test_status_is_stripped():
    assert LoadStatusUpdate(status="  Delivered ").status == "Delivered"
    assert LoadStatusUpdate().status is None
