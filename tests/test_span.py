"""
APMCore Span Tests

Tests cover: parent/child linkage, tags and data, status handling,
propagation headers, serialization and finishing.
"""

import json
import time

import pytest

from apmcore.errors import MalformedTraceContext
from apmcore.tracing.propagation import TRACEPARENT_REGEX
from apmcore.tracing.span import HTTP_STATUS_CODE_TAG, Span
from apmcore.tracing.status import SpanStatus
from apmcore.tracing.transaction import Transaction


# =============================================================================
# Construction & Linkage
# =============================================================================

class TestSpanLinkage:
    """Test span identity and parent/child linkage."""

    def test_generated_identifiers(self):
        """Test unspecified ids are generated with the right lengths."""
        span = Span()

        assert len(span.trace_id) == 32
        assert len(span.span_id) == 16
        assert span.parent_span_id is None
        assert span.start_timestamp > 0

    def test_distinct_span_ids(self):
        """Test every span gets its own span id."""
        spans = [Span() for _ in range(50)]
        assert len({s.span_id for s in spans}) == 50

    def test_opaque_identifiers_accepted(self):
        """Test malformed ids are kept as opaque strings."""
        span = Span(trace_id="not-hex", span_id="x")

        assert span.trace_id == "not-hex"
        assert span.span_id == "x"

    def test_start_child(self):
        """Test child inherits trace id and sampling, points at parent."""
        span = Span(sampled=True)
        child = span.start_child()

        assert child.parent_span_id == span.span_id
        assert child.trace_id == span.trace_id
        assert child.sampled == span.sampled
        assert child.span_id != span.span_id

    def test_start_child_options(self):
        """Test child takes its remaining fields from options."""
        span = Span()
        child = span.start_child(op="db", description="SELECT 1", tags={"a": "b"})

        assert child.op == "db"
        assert child.description == "SELECT 1"
        assert child.tags == {"a": "b"}

    def test_start_child_cannot_override_linkage(self):
        """Test linkage always comes from the parent."""
        span = Span(sampled=False)
        child = span.start_child(trace_id="other", parent_span_id="nope", sampled=True)

        assert child.trace_id == span.trace_id
        assert child.parent_span_id == span.span_id
        assert child.sampled is False

    def test_unsampled_parent_has_no_recorder(self):
        """Test children of a span without recorder carry none."""
        span = Span(sampled=False)
        child = span.start_child()

        assert span.span_recorder is None
        assert child.span_recorder is None

    def test_transaction_start_child_returns_span(self):
        """Test a transaction's child is a plain span."""
        transaction = Transaction(name="test", sampled=True)
        child = transaction.start_child()

        assert type(child) is Span
        assert child.parent_span_id == transaction.span_id
        assert child.trace_id == transaction.trace_id
        assert child.sampled == transaction.sampled

    def test_inherit_span_recorder(self):
        """Test descendants at any depth share the transaction's recorder."""
        transaction = Transaction(name="test", sampled=True)
        span2 = transaction.start_child()
        span3 = span2.start_child()
        span3.finish()

        assert transaction.span_recorder is span2.span_recorder
        assert transaction.span_recorder is span3.span_recorder

    def test_linkage_independent_of_finish_order(self):
        """Test children finished in reverse order stay linked to the parent."""
        transaction = Transaction(name="test", sampled=True)
        first = transaction.start_child(op="1")
        second = transaction.start_child(op="2")

        second.finish()
        first.finish()

        assert first.parent_span_id == transaction.span_id
        assert second.parent_span_id == transaction.span_id
        assert first.to_json()["parent_span_id"] == transaction.to_json()["span_id"]
        assert second.to_json()["parent_span_id"] == transaction.to_json()["span_id"]


# =============================================================================
# Setters
# =============================================================================

class TestSpanSetters:
    """Test tag and data setters."""

    def test_set_tag(self):
        """Test set_tag overwrites."""
        span = Span()
        assert "foo" not in span.tags

        span.set_tag("foo", "bar")
        assert span.tags["foo"] == "bar"

        span.set_tag("foo", "baz")
        assert span.tags["foo"] == "baz"

    def test_set_data(self):
        """Test set_data overwrites and keeps None as a value."""
        span = Span()
        assert "foo" not in span.data

        span.set_data("foo", None)
        assert "foo" in span.data
        assert span.data["foo"] is None

        span.set_data("foo", 2)
        assert span.data["foo"] == 2

        span.set_data("foo", True)
        assert span.data["foo"] is True

    def test_set_data_structured(self):
        """Test nested structured values are stored as given."""
        span = Span()
        span.set_data("rows", [{"id": 1}, {"id": 2}])

        assert span.data["rows"][1]["id"] == 2

    def test_setters_chain(self):
        """Test setters return the span."""
        span = Span().set_tag("a", "1").set_data("b", 2)

        assert span.tags == {"a": "1"}
        assert span.data == {"b": 2}

    def test_options_are_not_shared(self):
        """Test default mappings are per span."""
        a, b = Span(), Span()
        a.set_tag("x", "y")

        assert b.tags == {}


# =============================================================================
# Status
# =============================================================================

class TestSpanStatus:
    """Test status handling."""

    def test_set_status(self):
        """Test status shows in the trace context as its wire name."""
        span = Span()
        span.set_status(SpanStatus.PERMISSION_DENIED)

        assert span.get_trace_context()["status"] == "permission_denied"

    def test_set_status_from_wire_name(self):
        """Test a wire name is accepted."""
        span = Span()
        span.set_status("resource_exhausted")

        assert span.status is SpanStatus.RESOURCE_EXHAUSTED

    def test_set_http_status(self):
        """Test HTTP status maps onto the taxonomy and is tagged."""
        span = Span()
        span.set_http_status(404)

        assert span.get_trace_context()["status"] == "not_found"
        assert span.tags[HTTP_STATUS_CODE_TAG] == "404"
        assert span.tags["http.status_code"] == "404"

    def test_is_success(self):
        """Test only OK counts as success."""
        span = Span()
        assert span.is_success() is False

        span.set_http_status(200)
        assert span.is_success() is True

        span.set_status(SpanStatus.PERMISSION_DENIED)
        assert span.is_success() is False

    @pytest.mark.parametrize("code", [200, 201, 204, 299])
    def test_is_success_for_2xx(self, code):
        span = Span()
        span.set_http_status(code)
        assert span.is_success()

    @pytest.mark.parametrize("code", [100, 302, 400, 500])
    def test_not_success_outside_2xx(self, code):
        span = Span()
        span.set_http_status(code)
        assert not span.is_success()


# =============================================================================
# Propagation
# =============================================================================

class TestSpanTraceparent:
    """Test propagation header output."""

    def test_simple(self):
        """Test header shape without a sampling decision."""
        traceparent = Span().to_traceparent()

        assert TRACEPARENT_REGEX.match(traceparent)
        assert traceparent.endswith("-0")

    def test_with_sample(self):
        """Test header shape for a sampled span."""
        span = Span(sampled=True)
        traceparent = span.to_traceparent()

        assert TRACEPARENT_REGEX.match(traceparent)
        assert traceparent == f"00-{span.trace_id}-{span.span_id}-1"

    def test_not_sampled(self):
        """Test header shape for an unsampled span."""
        assert Span(sampled=False).to_traceparent().endswith("-0")

    def test_from_traceparent(self):
        """Test continuing a trace from a header."""
        span = Span.from_traceparent(
            "00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-1",
            op="http.server",
        )

        assert span.trace_id == "0af7651916cd43dd8448eb211c80319c"
        assert span.parent_span_id == "b7ad6b7169203331"
        assert span.span_id != "b7ad6b7169203331"
        assert span.sampled is True
        assert span.op == "http.server"

    def test_from_malformed_traceparent(self):
        """Test a malformed header raises."""
        with pytest.raises(MalformedTraceContext):
            Span.from_traceparent("garbage")


# =============================================================================
# Serialization
# =============================================================================

class TestSpanSerialization:
    """Test wire serialization."""

    def test_simple(self):
        """Test ids are serialized under their wire keys."""
        span = json.loads(json.dumps(
            Span(trace_id="a" * 32, span_id="b" * 16).to_json()
        ))

        assert span["span_id"] == "b" * 16
        assert span["trace_id"] == "a" * 32

    def test_minimal_shape(self):
        """Test a span with only ids serializes to exactly three keys."""
        serialized = Span(trace_id="a", span_id="b").to_json()

        assert set(serialized) == {"trace_id", "span_id", "start_timestamp"}

    def test_with_parent(self):
        """Test parent linkage is serialized."""
        span_a = Span(trace_id="a", span_id="b")
        span_b = Span(trace_id="c", span_id="d", sampled=False, parent_span_id=span_a.span_id)
        serialized = json.loads(json.dumps(span_b.to_json()))

        assert serialized["parent_span_id"] == "b"
        assert serialized["span_id"] == "d"
        assert serialized["trace_id"] == "c"

    def test_drops_absent_values(self):
        """Test absent attributes are omitted, not emitted as null."""
        span_a = Span(trace_id="a", span_id="b")
        span_b = Span(parent_span_id=span_a.span_id, span_id="d", trace_id="c")
        serialized = span_b.to_json()

        assert "start_timestamp" in serialized
        del serialized["start_timestamp"]
        assert serialized == {
            "parent_span_id": "b",
            "span_id": "d",
            "trace_id": "c",
        }

    def test_full_record(self):
        """Test every attribute maps onto its wire key."""
        span = Span(trace_id="t", span_id="s", op="db", description="q", start_timestamp=10.0)
        span.set_tag("k", "v")
        span.set_data("n", None)
        span.set_status(SpanStatus.OK)
        span.finish(12.5)

        assert span.to_json() == {
            "data": {"n": None},
            "description": "q",
            "op": "db",
            "span_id": "s",
            "start_timestamp": 10.0,
            "status": "ok",
            "tags": {"k": "v"},
            "timestamp": 12.5,
            "trace_id": "t",
        }


class TestTraceContext:
    """Test the trace-context sub-record."""

    def test_status_absent_when_unset(self):
        """Test no status key without a status."""
        assert "status" not in Span().get_trace_context()

    def test_ok_status(self):
        span = Span()
        span.set_status(SpanStatus.OK)
        assert span.get_trace_context()["status"] == "ok"

    def test_failure_status(self):
        span = Span()
        span.set_status(SpanStatus.RESOURCE_EXHAUSTED)
        assert span.get_trace_context()["status"] == "resource_exhausted"

    def test_drops_absent_values(self):
        """Test only present fields are emitted."""
        context = Span(span_id="d", trace_id="c").get_trace_context()

        assert context == {"span_id": "d", "trace_id": "c"}

    def test_full_context(self):
        span = Span(trace_id="c", span_id="d", parent_span_id="p", op="o", description="x")

        assert span.get_trace_context() == {
            "description": "x",
            "op": "o",
            "parent_span_id": "p",
            "span_id": "d",
            "trace_id": "c",
        }


# =============================================================================
# Finish
# =============================================================================

class TestSpanFinish:
    """Test finishing spans."""

    def test_simple(self):
        """Test finish stamps the end time."""
        span = Span()
        assert span.end_timestamp is None
        assert not span.is_finished

        span.finish()

        assert span.end_timestamp > 1
        assert span.is_finished
        assert span.start_timestamp <= span.end_timestamp

    def test_explicit_end_timestamp(self):
        span = Span(start_timestamp=100.0)
        span.finish(105.0)

        assert span.end_timestamp == 105.0
        assert span.duration == 5.0

    def test_second_finish_is_noop(self):
        """Test the first finish wins."""
        span = Span(start_timestamp=100.0)
        span.finish(105.0)
        span.finish(110.0)
        span.finish()

        assert span.end_timestamp == 105.0

    def test_end_before_start_is_clamped(self):
        """Test the end never precedes the start."""
        span = Span(start_timestamp=100.0)
        span.finish(90.0)

        assert span.end_timestamp == 100.0

    def test_duration_while_running(self):
        assert Span().duration is None

    def test_context_manager(self):
        """Test the span finishes on exit."""
        with Span() as span:
            time.sleep(0.001)

        assert span.is_finished
        assert span.status is None

    def test_context_manager_error(self):
        """Test an exception marks the span as an internal error."""
        with pytest.raises(RuntimeError):
            with Span() as span:
                raise RuntimeError("boom")

        assert span.is_finished
        assert span.status is SpanStatus.INTERNAL_ERROR

    def test_context_manager_keeps_explicit_status(self):
        with pytest.raises(RuntimeError):
            with Span() as span:
                span.set_http_status(404)
                raise RuntimeError("boom")

        assert span.status is SpanStatus.NOT_FOUND
