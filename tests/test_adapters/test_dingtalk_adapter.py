"""
钉钉智能表格适配器单元测试
"""

from unittest.mock import MagicMock, patch

import pytest

from flowfocus.adapters import DingtalkAdapter, PlatformAPIError


REQUEST_PATH = "flowfocus.adapters.base_adapter.requests.request"
SHEET = "https://api.dingtalk.com/v1.0/notable/bases/wb123/sheets/sheet1"


def make_response(data, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    return response


def token_response():
    return make_response({"errcode": 0, "errmsg": "ok", "access_token": "dt-token", "expires_in": 7200})


@pytest.fixture
def adapter():
    return DingtalkAdapter({
        "app_key": "dingabcdefghijk",
        "app_secret": "secret",
        "workbook_id": "wb123",
        "sheet_id": "sheet1",
        "operator_id": "union123",
        "retry_delay": 0,
    })


class TestDingtalkAdapter:
    def test_missing_required_fields(self):
        with pytest.raises(ValueError) as exc_info:
            DingtalkAdapter({"app_key": "k", "app_secret": "s"})
        assert str(exc_info.value) == "workbook_id, sheet_id required for dingtalk"

    def test_access_token(self, adapter):
        with patch(REQUEST_PATH, return_value=token_response()) as mock_request:
            assert adapter.get_access_token() == "dt-token"

        assert mock_request.call_args.args == ("GET", "https://oapi.dingtalk.com/gettoken")
        assert mock_request.call_args.kwargs["params"] == {"appkey": "dingabcdefghijk", "appsecret": "secret"}

    def test_token_errcode(self, adapter):
        with patch(REQUEST_PATH, return_value=make_response({"errcode": 40001, "errmsg": "invalid"})):
            with pytest.raises(PlatformAPIError) as exc_info:
                adapter.get_access_token()
        assert exc_info.value.message == "无效的访问令牌"

    def test_create_record(self, adapter):
        created = make_response({"value": [{"id": "rec1"}]})

        with patch(REQUEST_PATH, side_effect=[token_response(), created]) as mock_request:
            result = adapter.create_record({"name": "r1", "rewritten_text": "新文本"})

        assert result["id"] == "rec1"
        call = mock_request.call_args
        assert call.args == ("POST", f"{SHEET}/records")
        assert call.kwargs["headers"]["x-acs-dingtalk-access-token"] == "dt-token"
        assert call.kwargs["params"] == {"operatorId": "union123"}
        assert call.kwargs["json"] == {"records": [{"fields": {"名称": "r1", "改写结果": "新文本"}}]}

    def test_update_record(self, adapter):
        updated = make_response({"value": [{"id": "rec1"}]})

        with patch(REQUEST_PATH, side_effect=[token_response(), updated]) as mock_request:
            adapter.update_record("rec1", {"name": "r1"})

        call = mock_request.call_args
        assert call.args == ("PUT", f"{SHEET}/records")
        assert call.kwargs["json"]["records"][0]["id"] == "rec1"

    def test_batch_update_records(self, adapter):
        updated = make_response({"value": [{"id": "rec1"}, {"id": "rec2"}]})

        with patch(REQUEST_PATH, side_effect=[token_response(), updated]) as mock_request:
            result = adapter.batch_update_records([("rec1", {"name": "r1"}), ("rec2", {"name": "r2"})])

        assert [r["id"] for r in result] == ["rec1", "rec2"]
        call = mock_request.call_args
        assert call.args == ("PUT", f"{SHEET}/records")
        assert call.kwargs["json"] == {"records": [
            {"id": "rec1", "fields": {"名称": "r1"}},
            {"id": "rec2", "fields": {"名称": "r2"}},
        ]}

    def test_create_record_without_returned_row(self, adapter):
        with patch(REQUEST_PATH, side_effect=[token_response(), make_response({"value": []})]):
            with pytest.raises(PlatformAPIError) as exc_info:
                adapter.create_record({"name": "r1"})

        assert exc_info.value.platform == "dingtalk"
        assert exc_info.value.message == "no record returned"


    def test_batch_delete(self, adapter):
        with patch(REQUEST_PATH, side_effect=[token_response(), make_response({"success": True})]) as mock_request:
            result = adapter.batch_delete_records(["rec1", "rec2"])

        assert result["deleted_count"] == 2
        assert mock_request.call_args.args == ("POST", f"{SHEET}/records/delete")
        assert mock_request.call_args.kwargs["json"] == {"recordIds": ["rec1", "rec2"]}

    def test_get_records(self, adapter):
        page = make_response({"records": [{"id": "rec1", "fields": {"名称": "r1"}}], "hasMore": True, "nextToken": "n1"})

        with patch(REQUEST_PATH, side_effect=[token_response(), page]) as mock_request:
            items, token = adapter.get_records(page_size=20, page_token="n0")

        assert items == [{"id": "rec1", "fields": {"名称": "r1"}}]
        assert token == "n1"
        assert mock_request.call_args.kwargs["json"] == {"maxResults": 20, "nextToken": "n0"}

    def test_v1_error_body(self, adapter):
        error = make_response({"code": "Forbidden.AccessDenied", "message": "denied"}, status_code=403)

        with patch(REQUEST_PATH, side_effect=[token_response(), error]):
            with pytest.raises(PlatformAPIError) as exc_info:
                adapter.get_table_info()

        assert exc_info.value.code == "Forbidden.AccessDenied"
        assert exc_info.value.message == "应用权限不足"

    def test_get_table_info(self, adapter):
        sheet = make_response({"id": "sheet1", "name": "改写记录"})

        with patch(REQUEST_PATH, side_effect=[token_response(), sheet]) as mock_request:
            info = adapter.get_table_info()

        assert info["name"] == "改写记录"
        assert mock_request.call_args.args == ("GET", SHEET)
