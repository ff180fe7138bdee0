"""
Test Suite for Speech Pacing

Tests:
1. Pause markers after commas and sentence-ending periods
2. A second pass adds no markers (idempotence)
3. Decimals and ellipses are left alone
4. Pause values are normalized
5. Segment pauses only between non-empty segments
6. Auto-pacing failure falls back to the deterministic script
7. Auto-pacing success uses the annotated text
8. Pacing settings rows
"""

import asyncio
import sys
sys.path.insert(0, '.')

from fakes import FakeAutoPacingClient


def test_breaks_after_commas_and_periods():
    """Test 1: Markers are inserted after commas and periods."""
    print("\n[TEST 1] Comma and Period Breaks")
    print("-" * 50)

    from studio.core.pacing import apply_pacing_breaks

    output = apply_pacing_breaks("Lord, hear me. Amen.", "0.3", "0.8")
    expected = (
        'Lord, <break time="0.3s" /> hear me. <break time="0.8s" /> '
        'Amen. <break time="0.8s" />'
    )
    assert output == expected, f"Unexpected output: {output}"
    print(f"  ✓ {output}")

    assert apply_pacing_breaks("", "0.3", "0.8") == ""
    print("  ✓ Empty text stays empty")


def test_pacing_is_idempotent():
    """Test 2: Already-annotated text gets no duplicate markers."""
    print("\n[TEST 2] Idempotence")
    print("-" * 50)

    from studio.core.pacing import apply_pacing_breaks

    text = "Father, you are near. You hear, you heal, you restore. Amen."
    once = apply_pacing_breaks(text, "0.3", "0.8")
    twice = apply_pacing_breaks(once, "0.3", "0.8")

    assert once == twice, f"Second pass changed the text:\n{once}\n{twice}"
    assert once.count("<break") == text.count(",") + text.count(".")
    print(f"  ✓ {once.count('<break')} markers after one or two passes")


def test_decimals_and_ellipsis():
    """Test 3: Numbers and ellipses do not get sentence pauses."""
    print("\n[TEST 3] Decimals and Ellipsis")
    print("-" * 50)

    from studio.core.pacing import apply_pacing_breaks

    output = apply_pacing_breaks("Psalm 23.4 says... rest.", "0.3", "0.8")
    expected = 'Psalm 23.4 says... <break time="0.8s" /> rest. <break time="0.8s" />'
    assert output == expected, f"Unexpected output: {output}"
    print(f"  ✓ {output}")


def test_pause_normalization():
    """Test 4: Pause strings accept ',' and reject garbage."""
    print("\n[TEST 4] Pause Normalization")
    print("-" * 50)

    from studio.models.pacing import PacingConfig, normalize_seconds

    assert normalize_seconds("0,5") == "0.5"
    assert normalize_seconds(1) == "1.0"
    assert normalize_seconds(" 2.0 ") == "2.0"
    assert normalize_seconds("abc") == "0.0"
    assert normalize_seconds("-1") == "0.0"
    assert normalize_seconds(None) == "0.0"
    print("  ✓ normalize_seconds handles separators and invalid input")

    config = PacingConfig(comma_pause_seconds="0,4", period_pause_seconds=2)
    assert config.comma_pause_seconds == "0.4"
    assert config.period_pause_seconds == "2.0"
    print("  ✓ PacingConfig normalizes on construction")


def test_segment_pauses():
    """Test 5: Before/after pauses only join two non-empty segments."""
    print("\n[TEST 5] Segment Pauses")
    print("-" * 50)

    from studio.core.pacing import assemble_script
    from studio.models.pacing import PacingConfig

    config = PacingConfig(before_segment_pause_seconds="1.5", after_segment_pause_seconds="2.5")
    before = '<break time="1.5s" />'
    after = '<break time="2.5s" />'

    full = assemble_script("Prepare", "Pray", "Close", config)
    assert full == f"Prepare\n\n{before}\n\nPray\n\n{after}\n\nClose"
    print("  ✓ All segments: both pauses")

    no_prep = assemble_script("", "Pray", "Close", config)
    assert before not in no_prep and after in no_prep
    print("  ✓ No preparation: no before-pause")

    no_closing = assemble_script("Prepare", "Pray", "  ", config)
    assert before in no_closing and after not in no_closing
    print("  ✓ No closing: no after-pause")

    only_edges = assemble_script("Prepare", "", "Close", config)
    assert only_edges == "Prepare\n\nClose"
    print("  ✓ No main text: no segment pauses")


def test_auto_pacing_fallback():
    """Test 6: Auto-pacing failure yields exactly the deterministic script."""
    print("\n[TEST 6] Auto-Pacing Fallback")
    print("-" * 50)

    from studio.core.pacing import PacingSynthesizer, deterministic_script
    from studio.models.pacing import PacingConfig

    config = PacingConfig(auto_pacing_enabled=True)
    segments = ("Be still, and breathe.", "Lord, thank you. Amen.", "Go in peace.")
    expected = deterministic_script(*segments, config)

    for client in (
        FakeAutoPacingClient(error=RuntimeError("backend down")),
        FakeAutoPacingClient(text=""),
    ):
        script = asyncio.run(PacingSynthesizer(client).build_script(*segments, config))
        assert script, "Fallback script must not be empty"
        assert script == expected, f"Fallback differs:\n{script}\n{expected}"
        assert len(client.instructions) == 1
    print("  ✓ Error and empty response both fall back to deterministic pacing")


def test_auto_pacing_success():
    """Test 7: Annotated text from the backend is used as is."""
    print("\n[TEST 7] Auto-Pacing Success")
    print("-" * 50)

    from studio.core.pacing import PacingSynthesizer
    from studio.models.pacing import PacingConfig

    config = PacingConfig(auto_pacing_enabled=True, auto_pacing_instruction_template="Pace this: {text}")
    client = FakeAutoPacingClient(text='Lord <break time="1s" /> amen')

    script = asyncio.run(PacingSynthesizer(client).build_script("Prepare", "Pray", "Close", config))
    assert script == 'Lord <break time="1s" /> amen'
    assert client.instructions == ["Pace this: Prepare\n\nPray\n\nClose"]
    print("  ✓ Instruction carries the raw script, result used verbatim")

    disabled = asyncio.run(PacingSynthesizer(client).build_script("Prepare", "Pray", "Close", PacingConfig()))
    assert "<break" in disabled and len(client.instructions) == 1
    print("  ✓ Backend not called when auto-pacing is disabled")


def test_pacing_settings_rows():
    """Test 8: app_settings rows written by the admin screen map onto PacingConfig."""
    print("\n[TEST 8] Pacing Settings Rows")
    print("-" * 50)

    from studio.core.pacing import PacingSynthesizer
    from studio.models.pacing import PacingConfig

    config = PacingConfig.from_settings_rows({
        "gmanual_pause_comma": "0,5",
        "gmanual_pauses_auto_enabled": "true",
        "gmanual_pause_period": "",
        "gmanual_auto_pauses_prompt": "essa oração {texto} será escutada em voz alta",
    })
    assert config.comma_pause_seconds == "0.5"
    assert config.period_pause_seconds == "0.8"
    assert config.before_segment_pause_seconds == "1.0"
    assert config.after_segment_pause_seconds == "1.0"
    assert config.auto_pacing_enabled is True
    print("  ✓ Partial rows fill in defaults")

    client = FakeAutoPacingClient(text="Senhor <break time=\"1s\" /> amém")
    asyncio.run(PacingSynthesizer(client).build_script("", "Senhor, obrigado.", "", config))
    assert client.instructions == ["essa oração Senhor, obrigado. será escutada em voz alta"]
    print("  ✓ Saved prompt with {texto} receives the raw script")

    rows = config.to_settings_rows()
    assert rows["gmanual_pause_comma"] == "0.5"
    assert rows["gmanual_pauses_auto_enabled"] == "true"
    assert rows["gmanual_pause_before_prayer"] == "1.0"
    assert rows["gmanual_pause_after_prayer"] == "1.0"
    assert set(rows) == {
        "gmanual_pause_comma",
        "gmanual_pause_period",
        "gmanual_pause_before_prayer",
        "gmanual_pause_after_prayer",
        "gmanual_pauses_auto_enabled",
        "gmanual_auto_pauses_prompt",
    }
    print("  ✓ to_settings_rows writes every key")


def main():
    print("=" * 60)
    print("SPEECH PACING TEST SUITE")
    print("=" * 60)

    tests = [
        test_breaks_after_commas_and_periods,
        test_pacing_is_idempotent,
        test_decimals_and_ellipsis,
        test_pause_normalization,
        test_segment_pauses,
        test_auto_pacing_fallback,
        test_auto_pacing_success,
        test_pacing_settings_rows,
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
