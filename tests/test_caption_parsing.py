from promoshot.services.captions import (
    FALLBACK_CAPTION,
    FALLBACK_HASHTAGS,
    CaptionResult,
    extract_json_object,
    parse_caption_text,
)


def test_parses_json_object_embedded_in_prose():
    text = 'Sure! Here you go:\n```json\n{"caption": "Great shoes!", "hashtags": ["shoes", "fashion"]}\n```'
    draft = parse_caption_text(text)
    assert draft.caption == 'Great shoes!'
    assert draft.hashtags == ['shoes', 'fashion']


def test_hashtags_given_as_string_are_split():
    draft = parse_caption_text('{"caption": "Hi", "hashtags": "one two  three"}')
    assert draft.hashtags == ['one', 'two', 'three']


def test_missing_fields_fall_back_to_generic_values():
    draft = parse_caption_text('{"text": "nothing useful"}')
    assert draft.caption == FALLBACK_CAPTION
    assert draft.hashtags == list(FALLBACK_HASHTAGS)


def test_no_json_uses_first_line_as_caption():
    draft = parse_caption_text('\n\nBrand new sneakers are here.\nSecond line')
    assert draft.caption == 'Brand new sneakers are here.'
    assert draft.hashtags == ['marketing', 'product', 'brandnew']


def test_empty_text_uses_fallback_caption():
    draft = parse_caption_text('')
    assert draft.caption == FALLBACK_CAPTION
    assert draft.hashtags == list(FALLBACK_HASHTAGS)


def test_skips_braces_that_are_not_json():
    text = 'Use {brand} wisely. {"caption": "Real one", "hashtags": ["a"]}'
    assert extract_json_object(text) == {'caption': 'Real one', 'hashtags': ['a']}


def test_non_object_json_is_ignored():
    assert extract_json_object('["caption"]') is None


def test_result_serializes_caption_id_as_string_or_null():
    result = CaptionResult('https://cdn.test/a.png', 'Hello', ['a', 'b'])
    assert result.to_dict() == {
        'image_url': 'https://cdn.test/a.png',
        'caption': 'Hello',
        'hashtags': ['a', 'b'],
        'captionId': None,
    }
