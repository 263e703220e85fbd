from consentgate.sanitizer import InjectionMode, Sanitizer

DOCUMENT = (
    "<html><head><title>T</title></head>"
    '<body class="page"><header>Top</header><p>x</p></body></html>'
)


def _inject(data, target, mode):
    return Sanitizer().set_data(DOCUMENT).inject(data, target, mode).get()


def test_prepend_goes_right_after_the_opening_tag():
    assert '<body class="page">X<header>' in _inject("X", "body", InjectionMode.PREPEND)


def test_append_goes_right_before_the_closing_tag():
    assert "<p>x</p>X</body>" in _inject("X", "body", InjectionMode.APPEND)


def test_before_goes_in_front_of_the_opening_tag():
    assert '</head>X<body class="page">' in _inject("X", "body", InjectionMode.BEFORE)


def test_after_goes_behind_the_closing_tag():
    assert "<title>T</title>X</head>" in _inject("X", "title", "after")


def test_only_the_first_match_is_used():
    data = "<div>a</div><div>b</div>"
    html = Sanitizer().set_data(data).append("!", "div").get()
    assert html == "<div>a!</div><div>b</div>"


def test_missing_target_leaves_buffer_unchanged():
    assert _inject("X", "footer", InjectionMode.APPEND) == DOCUMENT


def test_head_does_not_match_header():
    html = Sanitizer().set_data("<body><header>h</header></body>").prepend("X", "head").get()
    assert html == "<body><header>h</header></body>"


def test_target_is_stripped_of_angle_brackets():
    assert "<p>x</p>X</body>" in _inject("X", "</body>", InjectionMode.APPEND)


def test_list_payload_is_joined_with_spaces():
    html = _inject(["<a>", "<b>"], "body", InjectionMode.APPEND)
    assert "<p>x</p><a> <b></body>" in html


def test_unknown_mode_falls_back_to_append():
    assert InjectionMode.coerce("sideways") is InjectionMode.APPEND
    assert "<p>x</p>X</body>" in _inject("X", "body", "sideways")


def test_injection_after_sanitize_targets_the_result():
    data = '<html><head></head><body><img src="https://cdn.example/a.png"></body></html>'
    html = (
        Sanitizer()
        .set_data(data)
        .append('<script defer src="/static/consent.js"></script>', "head")
        .sanitize()
        .append('<script defer src="/static/consent.js"></script>', "body")
        .get()
    )
    assert '<script defer src="/static/consent.js"></script></head>' in html
    assert '<script defer src="/static/consent.js"></script></body>' in html
    assert 'data-consent-element="img"' in html


def test_sanitize_data_merges_all_injection_sources():
    html = Sanitizer().sanitize_data(
        DOCUMENT,
        appends={"body": ["<i>append</i>"]},
        prepends={"head": "<meta name=x>"},
        injections={
            "APPEND": {"body": "<i>more</i>"},
            "after": {"title": "<i>after</i>"},
            InjectionMode.BEFORE: {"body": "<i>before</i>"},
        },
    )
    assert "<head><meta name=x><title>" in html
    assert "</title><i>after</i></head>" in html
    assert '<i>before</i><body class="page">' in html
    assert "<p>x</p><i>append</i> <i>more</i></body>" in html
