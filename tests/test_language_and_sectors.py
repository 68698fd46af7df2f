"""
Tests — language detection and sector classification.

Covers:
    - detect_language: ar / en / mixed / empty
    - classify_sector: keyword scoring, confidence, default sector, tie-break by priority
    - list_sectors: static descriptors in priority order
    - load_sector_catalog: custom profile files, inconsistent files
"""

import pytest

from platform_factory.analysis.language import detect_language
from platform_factory.analysis.sectors import (
    classify_sector,
    get_sector_catalog,
    list_sectors,
    load_sector_catalog,
    score_sectors,
)


# ═════════════════════════════════════════════════════════════════════════════
# LANGUAGE
# ═════════════════════════════════════════════════════════════════════════════

class TestDetectLanguage:

    def test_arabic_only(self):
        assert detect_language("أريد منصة لإدارة المستشفى") == "ar"

    def test_english_only(self):
        assert detect_language("Build a hospital patient record system") == "en"

    def test_mixed(self):
        assert detect_language("منصة CRM للمبيعات") == "mixed"

    def test_empty_is_english(self):
        assert detect_language("") == "en"

    def test_digits_and_punctuation_are_english(self):
        assert detect_language("12345 !?") == "en"


# ═════════════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════════

class TestClassifySector:

    def test_hospital_request_is_healthcare(self):
        ctx = classify_sector("Build a hospital patient record system")
        assert ctx.sector == "healthcare"
        assert ctx.confidence == pytest.approx(0.4)
        assert ctx.security_level == "high"
        assert "HIPAA" in ctx.compliance_requirements
        assert ctx.data_classification == "confidential"

    def test_five_hits_saturate_confidence(self):
        ctx = classify_sector("hospital medical patient doctor nurse")
        assert ctx.sector == "healthcare"
        assert ctx.confidence == 1.0

    def test_confidence_never_exceeds_one(self):
        ctx = classify_sector("hospital medical patient doctor nurse pharmacy diagnosis treatment")
        assert ctx.confidence == 1.0

    def test_no_keywords_defaults_to_commercial(self):
        ctx = classify_sector("Hello world")
        assert ctx.sector == "commercial"
        assert ctx.confidence == 0.5
        assert ctx.security_level == "enhanced"

    def test_empty_text_never_raises(self):
        ctx = classify_sector("")
        assert ctx.sector == "commercial"
        assert ctx.confidence == 0.5

    def test_arabic_keywords(self):
        ctx = classify_sector("نظام مستشفى جديد")
        assert ctx.sector == "healthcare"
        assert ctx.confidence == pytest.approx(0.2)

    def test_case_insensitive(self):
        assert classify_sector("MILITARY TACTICAL COMMAND").sector == "military"

    def test_tie_resolves_by_priority(self):
        # one hit each; healthcare is ranked before military
        assert classify_sector("hospital army").sector == "healthcare"
        # commercial is ranked before education and financial
        assert classify_sector("store school").sector == "commercial"
        assert classify_sector("school bank").sector == "education"

    def test_highest_score_wins_over_priority(self):
        ctx = classify_sector("bank loan investment hospital")
        assert ctx.sector == "financial"
        assert ctx.confidence == pytest.approx(0.6)

    def test_scores_cover_every_sector(self):
        scores = score_sectors("Build a hospital patient record system")
        assert set(scores) == {"healthcare", "military", "government", "commercial", "education", "financial"}
        assert scores["healthcare"] == 2

    def test_wire_shape(self):
        wire = classify_sector("school portal").to_wire()
        assert wire["sector"] == "education"
        assert wire["securityLevel"] == "enhanced"
        assert isinstance(wire["complianceRequirements"], list)
        assert "dataClassification" in wire


# ═════════════════════════════════════════════════════════════════════════════
# CATALOG
# ═════════════════════════════════════════════════════════════════════════════

class TestSectorCatalog:

    def test_list_sectors_in_priority_order(self):
        sectors = list_sectors()
        assert [s["id"] for s in sectors] == [
            "healthcare", "military", "government", "commercial", "education", "financial",
        ]
        healthcare = sectors[0]
        assert healthcare["name"] == "Healthcare"
        assert healthcare["nameAr"]
        assert healthcare["keywordCount"] > 0

    def test_catalog_has_version(self):
        assert get_sector_catalog().version

    def test_custom_profile_file(self, tmp_path):
        path = tmp_path / "sectors.yaml"
        path.write_text(
            "version: test\n"
            "priority: [commercial, education]\n"
            "default_sector: education\n"
            "sectors:\n"
            "  commercial:\n"
            "    keywords: {en: [shop]}\n"
            "    security_level: enhanced\n"
            "    data_classification: internal\n"
            "  education:\n"
            "    keywords: {en: [class]}\n"
            "    security_level: standard\n"
            "    data_classification: public\n",
            encoding="utf-8",
        )
        catalog = load_sector_catalog(str(path))
        assert catalog.version == "test"
        assert classify_sector("a shop", catalog).sector == "commercial"
        assert classify_sector("nothing here", catalog).sector == "education"

    def test_inconsistent_profile_file_rejected(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text(
            "priority: [commercial, healthcare]\n"
            "sectors:\n"
            "  commercial:\n"
            "    keywords: {en: [shop]}\n"
            "    security_level: enhanced\n"
            "    data_classification: internal\n",
            encoding="utf-8",
        )
        with pytest.raises(ValueError):
            load_sector_catalog(str(path))
