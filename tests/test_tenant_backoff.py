from shopbot.services.tenant_backoff import TenantBackoff


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _fail(backoff, times, tenant_id="tnt_a"):
    for _ in range(times):
        backoff.register_failure(tenant_id=tenant_id, integration="whatsapp_cloud")


def test_no_delay_below_threshold():
    backoff = TenantBackoff(threshold=3, clock=FakeClock())
    _fail(backoff, 2)

    decision = backoff.before_request(tenant_id="tnt_a", integration="whatsapp_cloud")

    assert decision.delay_seconds == 0.0
    assert decision.consecutive_failures == 2


def test_delay_doubles_and_caps():
    backoff = TenantBackoff(threshold=3, max_backoff_seconds=8.0, clock=FakeClock())
    delays = []
    for _ in range(7):
        _fail(backoff, 1)
        delays.append(backoff.before_request(tenant_id="tnt_a", integration="whatsapp_cloud").delay_seconds)

    assert delays == [0.0, 0.0, 1.0, 2.0, 4.0, 8.0, 8.0]


def test_success_clears_streak():
    backoff = TenantBackoff(threshold=1, clock=FakeClock())
    _fail(backoff, 4)
    backoff.register_success(tenant_id="tnt_a", integration="whatsapp_cloud")

    assert backoff.before_request(tenant_id="tnt_a", integration="whatsapp_cloud").consecutive_failures == 0


def test_stale_streak_is_forgotten():
    clock = FakeClock()
    backoff = TenantBackoff(threshold=1, reset_after_seconds=300.0, clock=clock)
    _fail(backoff, 5)
    clock.now += 301

    assert backoff.before_request(tenant_id="tnt_a", integration="whatsapp_cloud").delay_seconds == 0.0
    assert backoff.register_failure(tenant_id="tnt_a", integration="whatsapp_cloud") == 1


def test_streaks_are_per_tenant():
    backoff = TenantBackoff(threshold=1, clock=FakeClock())
    _fail(backoff, 5, tenant_id="tnt_a")

    assert backoff.before_request(tenant_id="tnt_b", integration="whatsapp_cloud").delay_seconds == 0.0
