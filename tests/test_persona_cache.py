"""Tests for PersonaCache."""

import threading

from context_assembly.core.persona_cache import PersonaCache, has_dynamic_values, variables_fingerprint
from context_assembly.templates import DefaultPersonaRenderer
from context_assembly.types import Message, Persona, Role


def _persona(name: str = "aria", content: str = "hello") -> Persona:
    return Persona(name=name, messages=[Message(role=Role.SYSTEM, content=content)])


def test_miss_then_hit():
    cache = PersonaCache()
    key = cache.key(_persona(), {"user": "Sam"})
    assert cache.get(key) is None
    cache.put(key, [Message(role=Role.SYSTEM, content="rendered")], ["user"])
    messages, names = cache.get(key)
    assert messages[0].content == "rendered"
    assert names == ["user"]
    assert (cache.hits, cache.misses) == (1, 1)


def test_key_depends_on_content_and_variables():
    cache = PersonaCache()
    base = cache.key(_persona(), {"user": "Sam"})
    assert cache.key(_persona(), {"user": "Sam"}) == base
    assert cache.key(_persona(), {"user": "Kim"}) != base
    assert cache.key(_persona(content="changed"), {"user": "Sam"}) != base
    assert cache.key(_persona(name="other"), {"user": "Sam"}) != base


def test_variables_fingerprint_order_independent():
    assert variables_fingerprint({"a": 1, "b": 2}) == variables_fingerprint({"b": 2, "a": 1})


def test_returned_messages_are_copies():
    cache = PersonaCache()
    key = cache.key(_persona(), {})
    cache.put(key, [Message(role=Role.SYSTEM, content="rendered")], [])
    first, _ = cache.get(key)
    first[0].content = "mutated"
    first.append(Message(role=Role.USER, content="extra"))
    second, _ = cache.get(key)
    assert [m.content for m in second] == ["rendered"]


def test_lru_eviction():
    cache = PersonaCache(max_size=2)
    keys = [cache.key(_persona(name=f"p{i}"), {}) for i in range(3)]
    cache.put(keys[0], [], [])
    cache.put(keys[1], [], [])
    cache.get(keys[0])
    cache.put(keys[2], [], [])
    assert len(cache) == 2
    assert cache.get(keys[1]) is None
    assert cache.get(keys[0]) is not None


def test_concurrent_puts_and_gets():
    cache = PersonaCache(max_size=8)

    def worker(i: int) -> None:
        for j in range(200):
            key = cache.key(_persona(name=f"p{(i + j) % 16}"), {})
            if cache.get(key) is None:
                cache.put(key, [Message(role=Role.SYSTEM, content=str(j))], [])

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) <= 8


def test_key_depends_on_renderer_type():
    class OtherRenderer(DefaultPersonaRenderer):
        pass

    persona = _persona()
    default = PersonaCache.key(persona, {}, DefaultPersonaRenderer())
    assert PersonaCache.key(persona, {}, DefaultPersonaRenderer()) == default
    assert PersonaCache.key(persona, {}, OtherRenderer()) != default


def test_key_depends_on_message_metadata():
    plain = _persona()
    tagged = _persona()
    tagged.messages[0].metadata = {"source": "preset"}
    assert PersonaCache.key(plain, {}) != PersonaCache.key(tagged, {})


def test_dynamic_values_detected():
    async def later():
        return "x"

    assert not has_dynamic_values({"user": "Sam", "n": 3})
    assert has_dynamic_values({"tick": lambda: "now"})
    coro = later()
    assert has_dynamic_values({"tick": coro})
    coro.close()
