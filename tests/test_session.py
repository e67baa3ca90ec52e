import string

from beerfest.session import SESSION_KEY, CurrentSession, SessionContext, decode_session, encode_session


def make_session(**overrides):
    fields = dict(
        event_id="e1",
        event_code="ABC234",
        event_name="Friday Sours",
        attendee_id="a1",
        attendee_name="Zoë",
        is_host=True,
        token="tok-123",
    )
    fields.update(overrides)
    return CurrentSession(**fields)


def test_save_then_load():
    ctx = SessionContext()
    session = make_session()
    ctx.save(session)

    assert SESSION_KEY in ctx.storage
    assert ctx.load() == session
    assert SessionContext(dict(ctx.storage)).load() == session


def test_load_without_session():
    assert SessionContext().load() is None
    assert SessionContext({"other": "x"}).load() is None


def test_corrupt_session_loads_as_none():
    for bad in ["not-base64!!", encode_session(make_session())[:-6], "e30", "W10"]:
        assert SessionContext({SESSION_KEY: bad}).load() is None


def test_encoding_is_cookie_safe():
    value = encode_session(make_session(event_name='quotes " and ; semis'))
    allowed = set(string.ascii_letters + string.digits + "-_")
    assert set(value) <= allowed
    assert decode_session(value).event_name == 'quotes " and ; semis'


def test_subscribers_are_notified():
    ctx = SessionContext()
    seen = []
    ctx.subscribe(seen.append)

    session = make_session()
    ctx.save(session)
    ctx.clear()

    assert seen == [session, None]
    assert ctx.load() is None
    assert SESSION_KEY not in ctx.storage


def test_unsubscribe():
    ctx = SessionContext()
    seen = []
    unsubscribe = ctx.subscribe(seen.append)
    unsubscribe()
    unsubscribe()

    ctx.save(make_session())
    assert seen == []
