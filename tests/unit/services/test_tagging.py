"""Unit tests for tag inference."""

import pytest

from anesthesia_hub.services.tagging import TAG_LABELS, infer_tags


def test_eras_and_obstetric_from_title():
    assert infer_tags("Dexmedetomidine for ERAS after cesarean") == ["ERAS", "Obstetric"]


def test_airway_from_title():
    assert infer_tags("Videolaryngoscopy in difficult airway") == ["Airway"]


def test_no_match_returns_empty_list():
    assert infer_tags("Economics of operating room turnover") == []


def test_abstract_is_searched_too():
    tags = infer_tags("A randomized trial", "Patients received an erector spinae block (ESP).")

    assert tags == ["Regional"]


def test_matching_is_case_insensitive():
    assert infer_tags("ENHANCED RECOVERY pathway") == ["ERAS"]


def test_tags_come_back_in_rule_order():
    tags = infer_tags(
        "Obstetric sepsis", "Ondansetron reduced PONV; ketamine was opioid-sparing."
    )

    assert tags == ["Opioid-sparing", "PONV", "ICU", "Obstetric"]
    assert tags == [t for t in TAG_LABELS if t in tags]


def test_each_tag_appears_once():
    tags = infer_tags("ERAS ERAS enhanced recovery", "fast-track ERAS")

    assert tags == ["ERAS"]


@pytest.mark.parametrize(
    "text, tag",
    [
        ("Labour analgesia with epidural", "Obstetric"),
        ("Postoperative ileus after colectomy", "GI recovery"),
        ("Supraglottic device use", "Airway"),
        ("Mechanical ventilation weaning", "ICU"),
        ("Opioid-free anesthesia", "Opioid-sparing"),
    ],
)
def test_single_rule_matches(text, tag):
    assert tag in infer_tags(text)


def test_word_boundaries_are_respected():
    # "GI" inside another word must not fire the GI recovery rule
    assert "GI recovery" not in infer_tags("Giant cell arteritis")
