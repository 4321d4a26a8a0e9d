"""
日志处理器测试
"""
from sf_core.utils.logger import LogContext, PIIMaskingProcessor, StockFlowProcessor


def test_pii_is_masked_recursively():
    processor = PIIMaskingProcessor()

    event = processor(None, "info", {
        "event": "Receipt sent",
        "customer": {"email": "alice@example.com"},
        "notes": ["password=hunter2"],
    })

    assert event["customer"]["email"] == "a***@example.com"
    assert "hunter2" not in event["notes"][0]


def test_context_fields_are_added_and_reset():
    processor = StockFlowProcessor()

    with LogContext(trace_id="t-1", operation="product.update"):
        event = processor(None, "info", {"event": "Product updated"})

    assert event["trace_id"] == "t-1"
    assert event["operation"] == "product.update"
    assert event["action"] == "Product updated"
    assert "trace_id" not in processor(None, "info", {"event": "after"})
