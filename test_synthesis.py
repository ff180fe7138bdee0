"""
Test Suite for Speech and Image Synthesis

Tests:
1. Speech uses the reported duration, else the local measurement
2. The voice the backend really used becomes the session default
3. Empty scripts and backend failures raise SynthesisError
4. Duration measurement never raises and honors its timeout
5. Image prompts are compiled from the admin template
6. Image failures degrade to None or the ephemeral URL
"""

import asyncio
import base64
import sys
sys.path.insert(0, '.')

import httpx

from fakes import FakeImageClient, FakeSpeechClient, IMAGE_URL, SPEECH_URL, make_image, make_speech


def test_speech_duration_resolution():
    """Test 1: Reported duration wins; otherwise the probe answers."""
    print("\n[TEST 1] Speech Duration")
    print("-" * 50)

    from studio.models.pacing import PacingConfig

    reported = make_speech(FakeSpeechClient(duration=73.25), probe_seconds=10.0)
    result = asyncio.run(reported.synthesize_segments("Be still.", "Lord, hear me.", "Amen.", PacingConfig()))
    assert result.asset_url == SPEECH_URL
    assert result.duration_seconds == 73.25
    print("  ✓ Backend-reported duration used")

    measured = make_speech(FakeSpeechClient(duration=0), probe_seconds=41.0)
    result = asyncio.run(measured.synthesize("Lord, hear me."))
    assert result.duration_seconds == 41.0
    print("  ✓ Zero duration replaced by the local measurement")

    unknown = make_speech(FakeSpeechClient(), probe_seconds=None)
    result = asyncio.run(unknown.synthesize("Lord, hear me."))
    assert result.duration_seconds is None
    print("  ✓ Unknown duration stays None")


def test_voice_substitution():
    """Test 2: Substituted voice becomes the default."""
    print("\n[TEST 2] Voice Substitution")
    print("-" * 50)

    client = FakeSpeechClient(voice_id_used="pNInz6obpgDQGcFmaJgB")
    coordinator = make_speech(client)

    result = asyncio.run(coordinator.synthesize("Lord, hear me.", voice_id="unknown-voice"))
    assert client.calls[0][1] == "unknown-voice"
    assert result.voice_id_used == "pNInz6obpgDQGcFmaJgB"
    assert result.voice_name_used == "Pastor Gabriel"
    assert coordinator.default_voice_id == "pNInz6obpgDQGcFmaJgB"
    print("  ✓ Voice used and its catalog name reported")

    client.voice_id_used = None
    asyncio.run(coordinator.synthesize("Lord, hear me again."))
    assert client.calls[1][1] == "pNInz6obpgDQGcFmaJgB"
    print("  ✓ Next request starts from the substituted voice")


def test_speech_errors():
    """Test 3: SynthesisError for empty scripts and backend failures."""
    print("\n[TEST 3] Speech Errors")
    print("-" * 50)

    from studio.clients.speech_client import SpeechClient
    from studio.core.errors import SynthesisError
    from studio.models.pacing import PacingConfig

    client = FakeSpeechClient()
    coordinator = make_speech(client)
    try:
        asyncio.run(coordinator.synthesize_segments("", " ", "", PacingConfig()))
        raise AssertionError("Empty script should raise")
    except SynthesisError as e:
        assert "empty" in str(e)
    assert client.calls == []
    print("  ✓ Empty script rejected before calling the backend")

    def server_error(request):
        return httpx.Response(502, text="voice engine down")

    def no_url(request):
        return httpx.Response(200, json={"duration_seconds": 12})

    for handler, expected in ((server_error, "HTTP 502"), (no_url, "audio_url")):
        http_client = SpeechClient(
            base_url="https://speech.test/v1/speech/synthesize",
            timeout=5,
            transport=httpx.MockTransport(handler)
        )
        try:
            asyncio.run(make_speech(http_client).synthesize("Lord, hear me."))
            raise AssertionError("Backend failure should raise")
        except SynthesisError as e:
            assert expected in str(e), f"Unexpected message: {e}"
        print(f"  ✓ SynthesisError mentions {expected}")


def test_measure_duration():
    """Test 4: None on bad payloads and timeouts."""
    print("\n[TEST 4] Duration Measurement")
    print("-" * 50)

    from studio.core.audio_duration import decode_data_url, measure_duration

    payload = base64.b64encode(b"not an mp3").decode()
    assert decode_data_url(f"data:audio/mpeg;base64,{payload}") == b"not an mp3"
    assert asyncio.run(measure_duration(f"data:audio/mpeg;base64,{payload}", timeout=2)) is None
    assert asyncio.run(measure_duration("data:audio/mpeg,plain", timeout=2)) is None
    assert asyncio.run(measure_duration("", timeout=2)) is None
    print("  ✓ Unreadable audio yields None")

    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, content=b"late")

    duration = asyncio.run(measure_duration(
        "https://cdn.example.com/speech/slow.mp3",
        timeout=0.05,
        transport=httpx.MockTransport(slow)
    ))
    assert duration is None
    print("  ✓ Timeout yields None")

    def missing(request):
        return httpx.Response(404)

    assert asyncio.run(measure_duration(
        "https://cdn.example.com/speech/missing.mp3",
        timeout=2,
        transport=httpx.MockTransport(missing)
    )) is None
    print("  ✓ HTTP errors yield None")


def test_image_prompt_compilation():
    """Test 5: Template placeholders filled from the draft context."""
    print("\n[TEST 5] Image Prompt Compilation")
    print("-" * 50)

    from studio.core.image_coordinator import compile_image_prompt

    context = {"topic": "Hope", "title": "Morning Light"}
    prompt = compile_image_prompt(
        "A sunrise over quiet hills",
        "Watercolor, soft light. {image_description}. Theme: {topic}.{missing}",
        context
    )
    assert prompt == "Watercolor, soft light. A sunrise over quiet hills. Theme: Hope."
    assert compile_image_prompt("A sunrise over quiet hills", None) == "A sunrise over quiet hills"
    print(f"  ✓ {prompt}")

    client = FakeImageClient()
    url = asyncio.run(make_image(client).synthesize("A sunrise over quiet hills", "Oil painting: {image_description}"))
    assert url == IMAGE_URL
    assert client.prompts == ["Oil painting: A sunrise over quiet hills"]
    print("  ✓ Compiled prompt sent to the image backend")


def test_image_failures_degrade():
    """Test 6: Short description, backend error, storage failure."""
    print("\n[TEST 6] Image Failure Policy")
    print("-" * 50)

    client = FakeImageClient()
    assert asyncio.run(make_image(client).synthesize("Too short")) is None
    assert client.prompts == []
    print("  ✓ Descriptions under 20 characters are skipped")

    failing = FakeImageClient(error=httpx.ConnectError("image backend unreachable"))
    assert asyncio.run(make_image(failing).synthesize("A sunrise over quiet hills")) is None
    print("  ✓ Backend errors yield None")

    class BrokenStorage:
        async def upload_image_from_url(self, url):
            raise RuntimeError("bucket not found")

    class WorkingStorage:
        async def upload_image_from_url(self, url):
            return "https://project.supabase.co/storage/v1/object/public/media/app-26/images/1.png"

    degraded = asyncio.run(make_image(FakeImageClient(), BrokenStorage()).synthesize("A sunrise over quiet hills"))
    assert degraded == IMAGE_URL
    print("  ✓ Storage failure falls back to the temporary URL")

    durable = asyncio.run(make_image(FakeImageClient(), WorkingStorage()).synthesize("A sunrise over quiet hills"))
    assert durable.endswith("/media/app-26/images/1.png")
    print("  ✓ Durable URL returned when the copy succeeds")


def main():
    print("=" * 60)
    print("SPEECH & IMAGE SYNTHESIS TEST SUITE")
    print("=" * 60)

    tests = [
        test_speech_duration_resolution,
        test_voice_substitution,
        test_speech_errors,
        test_measure_duration,
        test_image_prompt_compilation,
        test_image_failures_degrade,
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
