"""
Property-Based Tests for Message Chunking

Tests universal properties of the chunker using Hypothesis.
"""

from hypothesis import given, settings, strategies as st

from chatrelay.core.chunker import MAX_CHAT_BYTES, chunk_message, split_utf8


# Strategies for generating test data

@st.composite
def sender_strategy(draw):
    """Generate player-like names"""
    return draw(st.text(
        alphabet=st.characters(whitelist_categories=('Lu', 'Ll', 'Nd'), whitelist_characters='_'),
        min_size=1,
        max_size=16
    ))


@st.composite
def chat_body_strategy(draw):
    """Generate chat bodies, from empty to several fragments long"""
    return draw(st.one_of(
        st.text(max_size=50),
        st.text(min_size=200, max_size=1200),
        st.text(alphabet='x', min_size=0, max_size=1000),
    ))


class TestChunkBound:
    """
    Property 1: Chunk bound

    For any sender and body, every fragment encodes to at most the limit
    in UTF-8 bytes, and the fragments concatenate back to the message.
    """

    @settings(max_examples=200, deadline=None)
    @given(sender=sender_strategy(), body=chat_body_strategy())
    def test_fragments_within_limit(self, sender, body):
        fragments = chunk_message(sender, body)
        assert fragments
        for fragment in fragments:
            assert len(fragment.encode('utf-8')) <= MAX_CHAT_BYTES

    @settings(max_examples=200, deadline=None)
    @given(sender=sender_strategy(), body=chat_body_strategy())
    def test_fragments_reconstruct_message(self, sender, body):
        fragments = chunk_message(sender, body)
        assert "".join(fragments) == f"{sender}: {body}"
        assert fragments[0].startswith(f"{sender}: ")

    @settings(max_examples=100, deadline=None)
    @given(text=st.text(min_size=1, max_size=600), limit=st.integers(min_value=4, max_value=300))
    def test_cuts_are_maximal(self, text, limit):
        fragments = split_utf8(text, limit)
        # A fragment could not have taken the next character without overflowing
        for fragment, following in zip(fragments, fragments[1:]):
            grown = fragment + following[0]
            assert len(grown.encode('utf-8')) > limit

    @settings(max_examples=100, deadline=None)
    @given(length=st.integers(min_value=0, max_value=2000))
    def test_ascii_fragment_count(self, length):
        text = "a" * length
        fragments = split_utf8(text)
        expected = max(1, -(-length // MAX_CHAT_BYTES))
        assert len(fragments) == expected
