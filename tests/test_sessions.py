import threading

from portal.sessions import Identity, SessionStore, SESSION_TTL_SECONDS

ALICE = Identity(id="m-1", name="Alice", email="alice@portal.test", role="member")


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_create_and_resolve():
    store = SessionStore()
    token = store.create(ALICE)
    assert len(token) == 64
    int(token, 16)
    assert store.resolve(token) == ALICE


def test_tokens_are_unique():
    store = SessionStore()
    tokens = {store.create(ALICE) for _ in range(100)}
    assert len(tokens) == 100


def test_unknown_and_empty_tokens_resolve_to_none():
    store = SessionStore()
    assert store.resolve("nope") is None
    assert store.resolve("") is None
    assert store.resolve(None) is None


def test_token_expires_twelve_hours_after_creation():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    token = store.create(ALICE)

    clock.advance(SESSION_TTL_SECONDS - 1)
    assert store.resolve(token) == ALICE

    clock.advance(1)
    assert store.resolve(token) is None
    assert len(store) == 0


def test_resolving_does_not_extend_lifetime():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    token = store.create(ALICE)
    for _ in range(12):
        clock.advance(60 * 60 - 1)
        store.resolve(token)
    clock.advance(12)
    assert store.resolve(token) is None


def test_revoke_is_immediate_and_idempotent():
    store = SessionStore()
    token = store.create(ALICE)
    other = store.create(ALICE)
    store.revoke(token)
    store.revoke(token)
    assert store.resolve(token) is None
    assert store.resolve(other) == ALICE


def test_purge_removes_only_expired():
    clock = FakeClock()
    store = SessionStore(ttl=100, clock=clock)
    old = store.create(ALICE)
    clock.advance(60)
    young = store.create(ALICE)
    clock.advance(50)
    assert store.purge() == 1
    assert store.resolve(old) is None
    assert store.resolve(young) == ALICE


def test_reaper_lifecycle():
    store = SessionStore(purge_interval=0.01)
    store.start()
    store.create(ALICE)
    store.stop()
    assert len(store) == 0
    store.start()
    store.stop()


def test_revoke_identity_drops_every_session_of_that_member():
    store = SessionStore()
    bob = Identity(id="m-2", name="Bob", email="bob@portal.test", role="member")
    first, second = store.create(ALICE), store.create(ALICE)
    kept = store.create(bob)

    assert store.revoke_identity(ALICE.id) == 2
    assert store.resolve(first) is None
    assert store.resolve(second) is None
    assert store.resolve(kept) == bob
    assert store.revoke_identity(ALICE.id) == 0


def test_concurrent_create_resolve_revoke():
    store = SessionStore()
    workers, rounds = 16, 50
    barrier = threading.Barrier(workers)
    mismatches, errors = [], []

    def work(n):
        me = Identity(id=f"m-{n}", name=f"Member {n}", email=f"m{n}@portal.test", role="member")
        try:
            barrier.wait()
            for _ in range(rounds):
                token = store.create(me)
                if store.resolve(token) != me:
                    mismatches.append(n)
                store.revoke(token)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=work, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert mismatches == []
    assert len(store) == 0
