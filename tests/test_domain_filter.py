"""Tests for the clinical false-positive filter."""

import pytest

from phivault.phi.ports import DetectionSpan
from phivault.phi.safety import DomainFilter, FilterVocabulary, matches_known_identifier
from phivault.phi.safety.protected_terms import contains_term, is_numeric_token, only_frequency_tokens, split_words


class TestVocabularyHelpers:
    """Test tokenization helpers."""

    def test_split_on_whitespace_and_hyphen(self) -> None:
        assert split_words("Polymyalgia-Rheumatica  flare") == ["polymyalgia", "rheumatica", "flare"]

    @pytest.mark.parametrize("token", ["", "2", "0.5", ".5", "10."])
    def test_numeric_tokens(self, token: str) -> None:
        """Empty fragments count as numeric."""
        assert is_numeric_token(token)

    @pytest.mark.parametrize("token", ["bid", "2x", "one"])
    def test_non_numeric_tokens(self, token: str) -> None:
        assert not is_numeric_token(token)

    def test_contains_term_matches_whole_words(self) -> None:
        assert contains_term("Mr Tylenol", {"tylenol"})
        assert not contains_term("Tylenolson", {"tylenol"})

    def test_only_frequency_tokens(self) -> None:
        terms = frozenset({"bid", "daily"})
        assert only_frequency_tokens("2 BID", terms)
        assert only_frequency_tokens("daily", terms)
        assert not only_frequency_tokens("March 2 bid", terms)


class TestKnownIdentifiers:
    """Test containment matching against known identifiers."""

    def test_containment_in_both_directions(self) -> None:
        """"John" ~ "John Doe" and "Mr John Doe" ~ "John Doe"."""
        assert matches_known_identifier("John", ["John Doe"])
        assert matches_known_identifier("Mr John Doe", ["john doe"])

    def test_no_match(self) -> None:
        assert not matches_known_identifier("Jane Roe", ["John Doe"])

    def test_empty_identifiers_ignored(self) -> None:
        assert not matches_known_identifier("Jane", ["", "John"])


class TestDomainFilter:
    """Test the keep/drop predicate and span filtering."""

    def test_excluded_entity_type_dropped(self) -> None:
        domain_filter = DomainFilter()
        assert domain_filter.drop_reason("MEDICAL_CONDITION", "John") == "excluded_entity_type"

    def test_medical_term_person_dropped(self) -> None:
        """Drug and condition names tagged PERSON are clinical vocabulary."""
        domain_filter = DomainFilter()
        assert domain_filter.drop_reason("PERSON", "Tylenol") == "medical_term"
        assert domain_filter.drop_reason("PERSON", "Polymyalgia Rheumatica") == "medical_term"

    def test_medical_term_only_applies_to_person(self) -> None:
        assert DomainFilter().keep("LOCATION", "Tylenol")

    def test_frequency_date_dropped(self) -> None:
        domain_filter = DomainFilter()
        assert domain_filter.drop_reason("DATE_TIME", "2 bid") == "dosage_frequency"
        assert domain_filter.keep("DATE_TIME", "March 3")

    def test_known_identifier_allow_list(self) -> None:
        """With known identifiers, only matching PERSON spans survive."""
        domain_filter = DomainFilter()
        known = ["John Doe"]
        assert domain_filter.keep("PERSON", "John Doe", known)
        assert domain_filter.drop_reason("PERSON", "Dr. Smith", known) == "not_known_identifier"
        assert domain_filter.drop_reason("PERSON", "Tylenol", known) == "medical_term"

    def test_no_known_identifiers_keeps_all_people(self) -> None:
        assert DomainFilter().keep("PERSON", "Dr. Smith", [])
        assert DomainFilter().keep("PERSON", "Dr. Smith", None)

    def test_other_types_ignore_known_identifiers(self) -> None:
        assert DomainFilter().keep("PHONE_NUMBER", "555-123-4567", ["John Doe"])

    def test_apply_and_filter_phi_agree(self) -> None:
        """apply() output survives filter_phi() unchanged."""
        text = "John Doe takes Tylenol 2 bid"
        spans = [
            DetectionSpan(0, 8, "PERSON", 0.9),
            DetectionSpan(15, 22, "PERSON", 0.6),
            DetectionSpan(23, 28, "DATE_TIME", 0.7),
        ]
        domain_filter = DomainFilter()
        retained = domain_filter.apply(text, spans, field_path="notes", known_identifiers=["John Doe"])
        assert [item.value for item in retained] == ["John Doe"]
        assert retained[0].field_path == "notes"
        assert domain_filter.filter_phi(retained, ["John Doe"]) == retained

    def test_vocabulary_injection(self) -> None:
        """Injected vocabulary extends the defaults without mutating them."""
        vocabulary = FilterVocabulary.default().extended(medical_terms=["Zorblax"], frequency_terms=["q4h"])
        domain_filter = DomainFilter(vocabulary)
        assert domain_filter.drop_reason("PERSON", "Zorblax") == "medical_term"
        assert domain_filter.drop_reason("DATE_TIME", "q4h") == "dosage_frequency"
        assert DomainFilter().keep("PERSON", "Zorblax")

    def test_custom_excluded_types(self) -> None:
        vocabulary = FilterVocabulary(excluded_entity_types=frozenset({"NRP"}))
        domain_filter = DomainFilter(vocabulary)
        assert not domain_filter.keep("NRP", "anything")
        assert domain_filter.keep("MEDICAL_CONDITION", "anything")
