from crawlvault.utils.url_utils import canonical_locator, document_id


def test_document_id_is_md5_of_the_url():
    assert document_id("http://www.google.com") == "ed646a3334ca891fd3467db131372140"
    assert document_id("http://www.duckduckgo.com") == "3cd657f53c74f22c1a21b420ce3863fd"


def test_document_id_is_stable():
    ids = {document_id("http://example.com/a?b=1") for _ in range(5)}
    assert len(ids) == 1


def test_secure_scheme_folds_to_plain():
    assert canonical_locator("HTTPS://www.google.com") == "http://www.google.com"
    assert document_id("https://www.google.com") == document_id("http://www.google.com")


def test_query_string_toggle():
    first = "http://x.com/?a=1"
    second = "http://x.com/?b=2"

    assert document_id(first, include_query_string=False) == document_id(second, include_query_string=False)
    assert document_id(first, include_query_string=True) != document_id(second, include_query_string=True)


def test_query_string_removed_without_trailing_slash():
    assert canonical_locator("http://www.asd.com?asd=lol", include_query_string=False) == "http://www.asd.com"
