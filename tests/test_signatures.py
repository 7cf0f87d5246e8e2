"""
Tests for the built-in vendor signatures and the registry
"""

import pytest

from wafdetect.core.model import UNKNOWN_WAF, ProbeType
from wafdetect.signatures.base import Evidence, Signature
from wafdetect.signatures.builtin import (
    BUILTIN_SIGNATURE_CLASSES,
    AWSWAFSignature,
    CloudflareSignature,
    SucuriSignature,
    VendorSignature,
    builtin_signatures,
)
from wafdetect.signatures.registry import SignatureRegistry


class FixedSignature(Signature):
    def __init__(self, name, score):
        self.name = name
        self.score = score

    def match(self, probes):
        return self.score


class TestEvidence:

    def test_single_indicator_is_halved(self):
        evidence = Evidence()
        evidence.add("cf-ray", 0.35)
        assert evidence.score() == pytest.approx(0.175)

    def test_repeated_indicator_sums_but_stays_single(self):
        evidence = Evidence()
        for _ in range(3):
            evidence.add("block-page", 0.2)
        assert evidence.score() == pytest.approx(0.3)

    def test_two_indicators_not_discounted(self):
        evidence = Evidence()
        evidence.add("server", 0.3)
        evidence.add("cookie", 0.25)
        assert evidence.score() == pytest.approx(0.55)

    def test_clamped_to_one(self):
        evidence = Evidence()
        evidence.add("a", 0.9)
        evidence.add("b", 0.9)
        assert evidence.score() == 1.0

    def test_empty_is_zero(self):
        assert Evidence().score() == 0.0


class TestBuiltinSignatures:

    def test_twenty_vendors_in_order(self):
        signatures = builtin_signatures()
        assert len(signatures) == 20
        assert signatures[0].name == "Cloudflare"
        assert signatures[1].name == "AWS WAF"
        assert signatures[-1].name == "Penta Security WAPPLES"
        assert len({s.name for s in signatures}) == 20

    def test_no_evidence_scores_zero(self, make_probes):
        probes = make_probes(blocked_types=())
        for signature in builtin_signatures():
            assert signature.match(probes) == 0.0

    def test_single_header_is_half_weight(self, make_probe):
        probes = {ProbeType.NORMAL: make_probe(headers={"X-Sucuri-ID": "12345"})}
        assert SucuriSignature().match(probes) == pytest.approx(0.35 / 2)

    def test_evidence_summed_over_probes(self, make_probe):
        probes = {
            probe_type: make_probe(probe_type, headers={"Server": "cloudflare"})
            for probe_type in ProbeType.ordered()
        }
        # one distinct indicator seen four times: 4 * 0.3, halved
        assert CloudflareSignature().match(probes) == pytest.approx(0.6)

    def test_monotonic_as_indicators_are_added(self, make_probe):
        steps = [
            {},
            {"CF-Cache-Status": "HIT"},
            {"CF-Cache-Status": "HIT", "Server": "cloudflare"},
            {"CF-Cache-Status": "HIT", "Server": "cloudflare", "CF-Ray": "abc123"},
        ]
        scores = [
            CloudflareSignature().match({ProbeType.NORMAL: make_probe(headers=headers)})
            for headers in steps
        ]
        assert scores == sorted(scores)
        assert all(0.0 <= score <= 1.0 for score in scores)

    def test_failed_probes_are_ignored(self, make_probe, failed_probe):
        probes = {
            ProbeType.NORMAL: make_probe(headers={"X-Amzn-RequestId": "x"}),
            ProbeType.SQLI: failed_probe(ProbeType.SQLI),
        }
        assert AWSWAFSignature().match(probes) == pytest.approx(0.175)

    def test_cookie_indicator(self, make_probe):
        probes = {ProbeType.NORMAL: make_probe(cookies=["__cf_bm=abc; path=/"], headers={"Server": "cloudflare"})}
        assert CloudflareSignature().match(probes) == pytest.approx(0.55)

    def test_discount_is_configurable(self, make_probe):
        probes = {ProbeType.NORMAL: make_probe(headers={"X-Sucuri-ID": "1"})}
        assert SucuriSignature(min_indicators=1).match(probes) == pytest.approx(0.35)
        assert SucuriSignature(discount=0.25).match(probes) == pytest.approx(0.35 * 0.25)

    def test_classes_all_named(self):
        for cls in BUILTIN_SIGNATURE_CLASSES:
            assert cls.name != Signature.name

    def test_vendor_rule_must_implement_inspect(self):
        class Incomplete(VendorSignature):
            name = "Incomplete"

        with pytest.raises(TypeError):
            Incomplete()

    def test_cf_ray_on_block_pages_outranks_generic_block_text(self, make_probes):
        probes = make_probes(
            blocked={"status": 403, "body": "Request blocked by Firewall", "headers": {"CF-Ray": "abc123"}},
        )
        # CF-Ray on three blocked probes, one distinct indicator: 3 * 0.35, halved
        assert CloudflareSignature().match(probes) == pytest.approx(0.525)
        assert AWSWAFSignature().match(probes) == pytest.approx(0.45)
        assert SignatureRegistry.default().identify(probes) == ("Cloudflare", pytest.approx(0.525))


class TestSignatureRegistry:

    def test_below_floor_is_unknown(self, make_probes):
        registry = SignatureRegistry([FixedSignature("A", 0.29), FixedSignature("B", 0.1)])
        assert registry.identify(make_probes()) == (UNKNOWN_WAF, 0.0)

    def test_best_score_wins(self, make_probes):
        registry = SignatureRegistry([FixedSignature("A", 0.4), FixedSignature("B", 0.7)])
        assert registry.identify(make_probes()) == ("B", 0.7)

    def test_first_registered_wins_ties(self, make_probes):
        registry = SignatureRegistry()
        registry.register(FixedSignature("First", 0.5))
        registry.register(FixedSignature("Second", 0.5))
        assert registry.identify(make_probes()) == ("First", 0.5)

    def test_floor_is_inclusive(self, make_probes):
        registry = SignatureRegistry([FixedSignature("A", 0.3)])
        assert registry.identify(make_probes()) == ("A", 0.3)

    def test_custom_floor(self, make_probes):
        registry = SignatureRegistry([FixedSignature("A", 0.5)], acceptance_floor=0.6)
        assert registry.identify(make_probes()) == (UNKNOWN_WAF, 0.0)

    def test_scores_in_registration_order(self, make_probes):
        registry = SignatureRegistry([FixedSignature("A", 0.1), FixedSignature("B", 0.2)])
        assert registry.scores(make_probes()) == [("A", 0.1), ("B", 0.2)]
        assert [s.name for s in registry] == ["A", "B"]
        assert len(registry) == 2

    def test_default_uses_builtin_set(self):
        assert len(SignatureRegistry.default()) == 20
