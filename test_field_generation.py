"""
Test Suite for the Field Generation Client

Tests:
1. Successful generation is sanitized (fences, quotes, length cap)
2. Dependent fields never run against an empty main_text
3. Backend-reported failures and HTTP errors become failed results
4. Admin-saved prompt templates are used and substituted
5. Template placeholder helpers
"""

import asyncio
import json
import sys
sys.path.insert(0, '.')

import httpx

from fakes import FakeSettingsStore

BACKEND_URL = "https://text.test/v1/fields/generate"


def make_client(handler, settings_store=None):
    from studio.clients.field_generation_client import FieldGenerationClient
    return FieldGenerationClient(
        settings_store=settings_store,
        base_url=BACKEND_URL,
        timeout=5,
        transport=httpx.MockTransport(handler)
    )


def test_generate_sanitizes_content():
    """Test 1: Fences and quotes are unwrapped, titles capped at 60 chars."""
    print("\n[TEST 1] Sanitized Generation")
    print("-" * 50)

    from studio.models.draft import FieldName

    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        if body["field_name"] == "title":
            return httpx.Response(200, json={"ok": True, "content": "```\n\"Peace in the Storm\"\n```"})
        return httpx.Response(200, json={"ok": True, "content": "x" * 300})

    client = make_client(handler)
    context = {"topic": "Peace", "main_text": "Lord, calm the storm in me."}

    title = asyncio.run(client.generate(FieldName.TITLE, context))
    assert title.ok and title.content == "Peace in the Storm", f"Got {title}"
    assert requests[0]["field_name"] == "title"
    assert "Lord, calm the storm in me." in requests[0]["prompt"]
    assert requests[0]["context"]["topic"] == "Peace"
    print(f"  ✓ Title: {title.content}")

    subtitle = asyncio.run(client.generate(FieldName.SUBTITLE, context))
    assert subtitle.ok and len(subtitle.content) == 100
    print("  ✓ Subtitle capped at 100 characters")


def test_dependent_requires_main_text():
    """Test 2: No request is sent for a dependent field without main_text."""
    print("\n[TEST 2] Root Precondition")
    print("-" * 50)

    from studio.models.draft import FieldName

    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"ok": True, "content": "should not happen"})

    client = make_client(handler)
    for field in (FieldName.TITLE, FieldName.PREPARATION_TEXT, FieldName.CLOSING_TEXT):
        result = asyncio.run(client.generate(field, {"topic": "Hope", "main_text": "   "}))
        assert not result.ok
        assert "main_text" in result.error
    assert calls == [], "Backend must not be called without main_text"
    print("  ✓ Dependent fields fail fast on an empty root")

    root = asyncio.run(client.generate(FieldName.MAIN_TEXT, {"topic": "Hope"}))
    assert root.ok and len(calls) == 1
    print("  ✓ main_text itself only needs the topic")


def test_failures_become_results():
    """Test 3: generate() never raises."""
    print("\n[TEST 3] Failure Results")
    print("-" * 50)

    from studio.models.draft import FieldName

    def reported(request):
        return httpx.Response(200, json={"ok": False, "error": "Model refused"})

    def server_error(request):
        return httpx.Response(500, text="upstream exploded")

    def empty(request):
        return httpx.Response(200, json={"ok": True, "content": "  \"\"  "})

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    context = {"topic": "Hope"}
    result = asyncio.run(make_client(reported).generate(FieldName.MAIN_TEXT, context))
    assert not result.ok and result.error == "Model refused"
    print("  ✓ Backend-reported failure keeps its message")

    result = asyncio.run(make_client(server_error).generate(FieldName.MAIN_TEXT, context))
    assert not result.ok and "HTTP 500" in result.error
    print(f"  ✓ {result.error}")

    result = asyncio.run(make_client(empty).generate(FieldName.MAIN_TEXT, context))
    assert not result.ok and "empty" in result.error
    print("  ✓ Empty content is a failure")

    result = asyncio.run(make_client(unreachable).generate(FieldName.MAIN_TEXT, context))
    assert not result.ok and "unreachable" in result.error
    print("  ✓ Transport errors are a failure")


def test_saved_template_is_used():
    """Test 4: Admin-saved prompt wins over the default; unknown names render empty."""
    print("\n[TEST 4] Saved Prompt Templates")
    print("-" * 50)

    from studio.models.draft import FieldName

    prompts = []

    def handler(request: httpx.Request) -> httpx.Response:
        prompts.append(json.loads(request.content)["prompt"])
        return httpx.Response(200, json={"ok": True, "content": "Hope Renewed"})

    store = FakeSettingsStore({"gmanual_title_prompt": "Title for {topic}{unknown}: {main_text}"})
    client = make_client(handler, settings_store=store)
    result = asyncio.run(client.generate(FieldName.TITLE, {"topic": "Hope", "main_text": "Lord, renew me."}))

    assert result.ok
    assert prompts == ["Title for Hope: Lord, renew me."], f"Got {prompts}"
    print(f"  ✓ Prompt: {prompts[0]}")

    broken_store = FakeSettingsStore(error=RuntimeError("settings table down"))
    client = make_client(handler, settings_store=broken_store)
    result = asyncio.run(client.generate(FieldName.TITLE, {"topic": "Hope", "main_text": "Lord, renew me."}))
    assert result.ok
    assert "Lord, renew me." in prompts[-1]
    print("  ✓ Default prompt used when configuration storage fails")


def test_template_helpers():
    """Test 5: Placeholder substitution and discovery."""
    print("\n[TEST 5] Template Helpers")
    print("-" * 50)

    from studio.utils.templates import apply_placeholders, placeholder_names

    assert apply_placeholders("{a} and {b} and {a}", {"a": "x"}) == "x and  and x"
    assert placeholder_names("{a} {b} {a}") == ["a", "b"]
    assert apply_placeholders("", {"a": "x"}) == ""
    print("  ✓ Unknown placeholders render empty, names de-duplicated")


def main():
    print("=" * 60)
    print("FIELD GENERATION CLIENT TEST SUITE")
    print("=" * 60)

    tests = [
        test_generate_sanitizes_content,
        test_dependent_requires_main_text,
        test_failures_become_results,
        test_saved_template_is_used,
        test_template_helpers,
    ]

    results = []
    for index, test in enumerate(tests, start=1):
        try:
            test()
            results.append(True)
        except Exception as e:
            print(f"  ✗ TEST {index} FAILED: {e}")
            results.append(False)

    print("\n" + "=" * 60)
    print(f"RESULTS: {sum(results)}/{len(results)} tests passed")
    print("=" * 60)
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
