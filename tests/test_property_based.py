"""Property-based tests using hypothesis."""

from hypothesis import HealthCheck, given, settings, strategies as st

from mirror.core.errors import DuplicateRelay
from mirror.events import MirrorPayload, message_in
from mirror.gateway.pipeline import extract_payload
from mirror.gateway.router import DirectDelivery, RoutingTable

_sources = st.sampled_from(["S1", "S2", "S3", "S4"])
_ops = st.lists(
    st.tuples(st.sampled_from(["add", "remove"]), _sources, st.sampled_from(["D1", "D2"])),
    max_size=60,
)
# reset_cfg is autouse; examples of one test share its config
_settings = settings(suppress_health_check=[HealthCheck.function_scoped_fixture])


class TestPropertyBased:
    """Property-based tests for invariants."""

    @_settings
    @given(_ops)
    def test_routing_table_sources_unique(self, ops):
        """Property: any add/remove sequence leaves at most one record per source."""
        # Arrange
        table = RoutingTable()
        model: dict[str, str] = {}

        # Act
        for op, source, destination in ops:
            if op == "add":
                try:
                    table.add(source, destination, DirectDelivery())
                except DuplicateRelay:
                    assert source in model
                    continue
                assert source not in model
                model[source] = destination
            else:
                assert table.remove(source) == (source in model)
                model.pop(source, None)

        # Assert
        sources = [s.source_id for s in table.list()]
        assert len(sources) == len(set(sources))
        assert {s.source_id: s.target_id for s in table.list()} == model

    @_settings
    @given(
        st.lists(st.sampled_from(["a", "b", "c", "d"]), max_size=6),
        st.lists(st.sampled_from(["a", "b", "e"]), max_size=6),
    )
    def test_extracted_attachments_unique(self, attached, linked):
        """Property: attachment references never repeat and keep real attachments first."""
        urls = {k: f"https://cdn.example/{k}.png" for k in "abcde"}
        text = " ".join(urls[k] for k in linked)
        _, evt = message_in("S1", "m1", "42", "Alice", text, attachments=[urls[k] for k in attached])

        payload = extract_payload(evt, r"https://cdn\.example/\S+")

        assert len(payload.attachments) == len(set(payload.attachments))
        first_attached = list(dict.fromkeys(urls[k] for k in attached))
        assert payload.attachments[: len(first_attached)] == first_attached

    @_settings
    @given(st.text(max_size=5))
    def test_payload_empty_iff_no_content(self, text):
        """Property: a payload without attachments or embeds is empty exactly when its text is."""
        assert MirrorPayload(content=text or None).is_empty == (text == "")
