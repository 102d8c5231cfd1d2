from rate_limit import RATE_LIMIT_RULES, check_rate_limit


def test_allows_up_to_limit_then_refuses():
    limit, window = RATE_LIMIT_RULES['jobs']
    for i in range(limit):
        assert check_rate_limit('1.2.3.4', 'jobs', now=1000.0 + i) == (True, 0)

    allowed, retry_after = check_rate_limit('1.2.3.4', 'jobs', now=1000.0 + limit)
    assert not allowed
    assert retry_after == window - limit + 1


def test_window_slides():
    limit, window = RATE_LIMIT_RULES['jobs']
    for _ in range(limit):
        check_rate_limit('5.6.7.8', 'jobs', now=1000.0)
    assert check_rate_limit('5.6.7.8', 'jobs', now=1000.0 + window)[0]


def test_budgets_are_per_client_and_endpoint():
    limit, _ = RATE_LIMIT_RULES['jobs']
    for _ in range(limit):
        check_rate_limit('9.9.9.9', 'jobs', now=50.0)
    assert not check_rate_limit('9.9.9.9', 'jobs', now=50.0)[0]
    assert check_rate_limit('9.9.9.9', 'itineraries', now=50.0)[0]
    assert check_rate_limit('8.8.8.8', 'jobs', now=50.0)[0]


def test_unknown_endpoint_is_not_limited():
    assert check_rate_limit('1.1.1.1', 'unknown') == (True, 0)
