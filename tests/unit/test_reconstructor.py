# tests/unit/test_reconstructor.py
"""针对 `DocumentReconstructor` 与派生 URL 字段的单元测试。"""

import copy
from typing import Any

import pytest

from trans_relay.cache import TranslationCache
from trans_relay.core.exceptions import ReconstructionError
from trans_relay.pipeline import DocumentReconstructor, FragmentExtractor, localize_url
from trans_relay.schema import ALT_TAGS_BUCKET, HEADINGS_BUCKET, REPORT_SCHEMA


def _translate_all(document: dict[str, Any], cache: TranslationCache) -> dict[str, Any]:
    """与文档级流水线一致：标题与 alt 文本写入简单缓存桶，其余由重建步骤写入。"""
    extraction = FragmentExtractor(REPORT_SCHEMA, cache).extract(document)
    fragments = {
        f.fragment_id: f"{f.text}_{cache.language}" for f in extraction.fragments
    }
    for fragment in extraction.fragments:
        hint = fragment.cache_hint
        if hint is not None and hint.bucket in (HEADINGS_BUCKET, ALT_TAGS_BUCKET):
            cache.store(hint.bucket, hint.key, fragments[fragment.fragment_id])
    merged = {**extraction.cache_hits, **fragments}
    return DocumentReconstructor(REPORT_SCHEMA, cache).reconstruct(
        document, extraction.skeleton, merged, required=fragments
    )


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://example.com/reports/x", "https://example.com/fr/reports/x"),
        ("https://example.com", "https://example.com/fr/"),
        ("https://example.com/a?b=1#c", "https://example.com/fr/a?b=1#c"),
    ],
)
def test_localize_url(url: str, expected: str) -> None:
    assert localize_url(url, "fr") == expected


def test_localize_url_rejects_relative() -> None:
    with pytest.raises(ValueError):
        localize_url("/reports/x", "fr")


def test_full_document_reconstruction(report_document: dict[str, Any]) -> None:
    original = copy.deepcopy(report_document)
    output = _translate_all(report_document, TranslationCache("fr"))

    assert report_document == original, "源文档不应被修改"
    assert output["title"] == "Market Report_fr"
    assert output["faqSectionHeading"] == "Frequently Asked Questions_fr"
    assert output["description"] == "<p>Hello_fr <b>world_fr</b></p>"
    assert output["slug"] == "market-report"
    assert output["reportID"] == "R-1"

    first, second = output["tableOfContent"]
    assert first == {
        "id": 11,
        "title": "Intro_fr",
        "description": '<p>Hello_fr <img alt="pic_fr" /></p>',
    }
    assert second == {"id": 12, "title": "Scope_fr", "description": None}

    seo = output["seo"]
    assert seo["metaTitle"] == "Market Report 2024_fr"
    assert seo["metaDescription"] == "All about the market_fr"
    assert seo["canonicalURL"] == "https://example.com/fr/reports/market?ref=a#top"
    assert seo["metaSocial"] == [
        {
            "id": 7,
            "socialNetwork": "twitter",
            "title": "Market Report 2024_fr",
            "description": "Share this_fr",
        }
    ]


def test_reconstruction_writes_structural_cache(report_document: dict[str, Any]) -> None:
    cache = TranslationCache("fr")
    _translate_all(report_document, cache)
    snapshot = cache.snapshot()
    assert len(snapshot["tocItems"]) == 2
    (seo_entry,) = snapshot["seoComponents"].values()
    assert seo_entry == {
        "metaTitle": "Market Report 2024_fr",
        "metaDescription": "All about the market_fr",
        "metaSocial": [{"title": "Market Report 2024_fr", "description": "Share this_fr"}],
    }


def test_warm_cache_produces_identical_output(report_document: dict[str, Any]) -> None:
    cache = TranslationCache("fr")
    cold = _translate_all(report_document, cache)
    extraction = FragmentExtractor(REPORT_SCHEMA, cache).extract(report_document)
    assert extraction.fragment_texts == ["Market Report", "Hello", "world"]
    warm = _translate_all(report_document, cache)
    assert warm == cold


def test_invalid_derived_url_keeps_original(report_document: dict[str, Any]) -> None:
    report_document["seo"]["canonicalURL"] = "not a url"
    output = _translate_all(report_document, TranslationCache("fr"))
    assert output["seo"]["canonicalURL"] == "not a url"


def test_unplaced_required_fragment_raises(report_document: dict[str, Any]) -> None:
    cache = TranslationCache("fr")
    extraction = FragmentExtractor(REPORT_SCHEMA, cache).extract(report_document)
    reconstructor = DocumentReconstructor(REPORT_SCHEMA, cache)
    with pytest.raises(ReconstructionError):
        reconstructor.reconstruct(
            report_document,
            extraction.skeleton,
            {"field::doesNotExist": "x"},
            required=["field::doesNotExist"],
        )


def test_missing_slot_item_raises(report_document: dict[str, Any]) -> None:
    cache = TranslationCache("fr")
    extraction = FragmentExtractor(REPORT_SCHEMA, cache).extract(report_document)
    truncated = dict(report_document, tableOfContent=report_document["tableOfContent"][:1])
    with pytest.raises(ReconstructionError):
        DocumentReconstructor(REPORT_SCHEMA, cache).reconstruct(
            truncated, extraction.skeleton, {}
        )


def test_untranslated_fields_keep_source_text() -> None:
    """没有译文的字段保持原文，结构不变。"""
    document = {"title": "Keep", "tableOfContent": [{"title": "Intro"}]}
    cache = TranslationCache("fr")
    extraction = FragmentExtractor(REPORT_SCHEMA, cache).extract(document)
    output = DocumentReconstructor(REPORT_SCHEMA, cache).reconstruct(
        document, extraction.skeleton, {}
    )
    assert output == document
