from content_mapper.html_preprocessor import extract_body_content, preprocess_html, preprocessing_stats


def test_strips_noise():
    html = """
    <html><head><style>.a { color: red }</style><script>track()</script></head>
    <body>
      <!-- nav comment -->
      <noscript>enable js</noscript>
      <div style="display: none">hidden promo</div>
      <span style='visibility:hidden'>ghost</span>
      <input type="hidden" name="csrf" value="x">
      <h1>Visible    title</h1>
    </body></html>
    """
    out = preprocess_html(html)
    for gone in ("color: red", "track()", "nav comment", "enable js", "hidden promo", "ghost", "csrf"):
        assert gone not in out
    assert "<h1>Visible title</h1>" in out


def test_truncates_at_nearby_tag_boundary():
    html = "<p>" + "x" * 93 + "</p><p>yyyyyyyy</p>"
    out = preprocess_html(html, max_chars=105)
    assert out == "<p>" + "x" * 93 + "</p><p>"


def test_truncates_hard_when_no_tag_is_near():
    out = preprocess_html("<p>" + "x" * 300 + "</p>", max_chars=100)
    assert len(out) == 100


def test_body_extraction_and_stats():
    assert extract_body_content("<html><body class='a'><p>hi</p></body></html>") == "<p>hi</p>"
    assert extract_body_content("<p>fragment</p>") == "<p>fragment</p>"
    stats = preprocessing_stats("a" * 200, "a" * 50)
    assert stats == {"original_size": 200, "processed_size": 50, "reduction": 150, "reduction_percent": 75.0}
    assert preprocessing_stats("", "")["reduction_percent"] == 0.0
