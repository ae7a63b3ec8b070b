#!/usr/bin/env python3
"""
Tests for ImplementationResolver: interface dispatch, oracle choice and the
first-candidate fallback.
"""

import sys
import os
from typing import Dict, List
from unittest.mock import AsyncMock

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from method_drill.analysis.resolver import ImplementationResolver, match_candidate
from method_drill.core.interfaces import ConcreteImplementationIndex, DisambiguationOracle
from method_drill.core.models import CallSite, DisambiguationRequest, MethodDescriptor
from method_drill.llm.base import LLMConnectionError


def make_method(name, class_name, namespace="Shop.Payments", project="Shop.Core", **kwargs):
    return MethodDescriptor(name=name, class_name=class_name, namespace=namespace, project=project, **kwargs)


class FakeImplementationIndex(ConcreteImplementationIndex):
    """Implementation lookups from a plain dict."""

    def __init__(self, implementations: Dict[str, List[MethodDescriptor]] = None):
        self.implementations = implementations or {}
        self.queries = []

    async def find(self, abstract_method_id: str) -> List[MethodDescriptor]:
        self.queries.append(abstract_method_id)
        return list(self.implementations.get(abstract_method_id, []))


class FixedOracle(DisambiguationOracle):
    """Always gives the same answer and records the requests it saw."""

    def __init__(self, answer):
        self.answer = answer
        self.requests: List[DisambiguationRequest] = []

    async def choose(self, request):
        self.requests.append(request)
        return self.answer


class FailingOracle(DisambiguationOracle):

    def __init__(self, error: Exception):
        self.error = error

    async def choose(self, request):
        raise self.error


# ============================================================================
# TEST DATA
# ============================================================================

CHARGE = make_method("Charge", "IPaymentGateway", is_abstract=True)
STRIPE = make_method("Charge", "StripeGateway", namespace="Shop.Payments.Stripe")
PAYPAL = make_method("Charge", "PayPalGateway", namespace="Shop.Payments.PayPal")
ADYEN = make_method("Charge", "AdyenGateway", namespace="Shop.Payments.Adyen")
CALL_SITE = CallSite(target_id=CHARGE.method_id, text="_payments.Charge(customer, total)", line=35)


def three_implementers():
    return FakeImplementationIndex({CHARGE.method_id: [STRIPE, PAYPAL, ADYEN]})


# ============================================================================
# resolve()
# ============================================================================

class TestResolve:

    @pytest.mark.asyncio
    async def test_concrete_target_returned_unchanged(self):
        index = three_implementers()
        resolver = ImplementationResolver(index)
        resolution = await resolver.resolve(STRIPE)
        assert resolution.method is STRIPE
        assert resolution.resolved_from is None
        assert index.queries == []

    @pytest.mark.asyncio
    async def test_no_implementers_keeps_abstract_target(self):
        resolver = ImplementationResolver(FakeImplementationIndex())
        resolution = await resolver.resolve(CHARGE)
        assert resolution.method == CHARGE
        assert resolution.resolved_from is None
        assert not resolution.used_fallback

    @pytest.mark.asyncio
    async def test_single_implementer_is_labelled(self):
        oracle = FixedOracle("anything")
        resolver = ImplementationResolver(FakeImplementationIndex({CHARGE.method_id: [PAYPAL]}), oracle)
        resolution = await resolver.resolve(CHARGE)
        assert resolution.method == PAYPAL
        assert resolution.resolved_from == "IPaymentGateway"
        assert oracle.requests == []

    @pytest.mark.asyncio
    async def test_oracle_chooses_second_of_three(self):
        oracle = FixedOracle("Shop.Payments.PayPal.PayPalGateway")
        resolver = ImplementationResolver(three_implementers(), oracle)

        resolution = await resolver.resolve(CHARGE, CALL_SITE)

        assert resolution.method == PAYPAL
        assert resolution.resolved_from == "IPaymentGateway"
        assert not resolution.used_fallback

        request = oracle.requests[0]
        assert request.abstract_method == CHARGE
        assert request.call_site_text == "_payments.Charge(customer, total)"
        assert request.candidates == [STRIPE, PAYPAL, ADYEN]

    @pytest.mark.asyncio
    async def test_unknown_name_falls_back_to_first_candidate(self):
        resolver = ImplementationResolver(three_implementers(), FixedOracle("Shop.Payments.Braintree"))
        resolution = await resolver.resolve(CHARGE, CALL_SITE)
        assert resolution.method == STRIPE
        assert resolution.resolved_from == "IPaymentGateway"
        assert resolution.used_fallback

    @pytest.mark.asyncio
    async def test_no_oracle_falls_back_to_first_candidate(self):
        resolver = ImplementationResolver(three_implementers())
        resolution = await resolver.resolve(CHARGE)
        assert resolution.method == STRIPE
        assert resolution.used_fallback

    @pytest.mark.asyncio
    async def test_oracle_returning_none_falls_back(self):
        resolver = ImplementationResolver(three_implementers(), FixedOracle(None))
        resolution = await resolver.resolve(CHARGE)
        assert resolution.method == STRIPE
        assert resolution.used_fallback

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        LLMConnectionError("ollama request timed out after 15s"),
        ValueError("bad reply"),
        RuntimeError("boom"),
    ])
    async def test_oracle_failure_never_propagates(self, error):
        resolver = ImplementationResolver(three_implementers(), FailingOracle(error))
        resolution = await resolver.resolve(CHARGE, CALL_SITE)
        assert resolution.method == STRIPE
        assert resolution.used_fallback

    @pytest.mark.asyncio
    async def test_async_mock_oracle(self):
        oracle = AsyncMock(spec=DisambiguationOracle)
        oracle.choose.return_value = ADYEN
        resolver = ImplementationResolver(three_implementers(), oracle)

        resolution = await resolver.resolve(CHARGE, CALL_SITE)

        assert resolution.method == ADYEN
        oracle.choose.assert_awaited_once()


# ============================================================================
# choose_among()
# ============================================================================

class TestChooseAmong:

    @pytest.mark.asyncio
    async def test_empty_candidate_set(self):
        resolver = ImplementationResolver(FakeImplementationIndex(), FixedOracle("x"))
        assert await resolver.choose_among([]) is None

    @pytest.mark.asyncio
    async def test_single_candidate_used_directly(self):
        oracle = FixedOracle("x")
        resolver = ImplementationResolver(FakeImplementationIndex(), oracle)
        resolution = await resolver.choose_among([PAYPAL])
        assert resolution.method == PAYPAL
        assert oracle.requests == []

    @pytest.mark.asyncio
    async def test_oracle_picks_among_candidates(self):
        resolver = ImplementationResolver(FakeImplementationIndex(), FixedOracle("AdyenGateway"))
        resolution = await resolver.choose_among([STRIPE, PAYPAL, ADYEN])
        assert resolution.method == ADYEN

    @pytest.mark.asyncio
    async def test_ambiguous_site_request_has_no_abstract_method(self):
        oracle = FixedOracle("PayPalGateway")
        resolver = ImplementationResolver(FakeImplementationIndex(), oracle)
        site = CallSite(candidate_ids=(STRIPE.method_id, PAYPAL.method_id), text="Pick().Charge(total)")

        resolution = await resolver.choose_among([STRIPE, PAYPAL], site)

        assert resolution.method == PAYPAL
        request = oracle.requests[0]
        assert request.abstract_method is None
        assert request.candidates == [STRIPE, PAYPAL]
        assert request.describe_target() == "ambiguous call Pick().Charge(total)"

    @pytest.mark.asyncio
    async def test_chosen_abstract_candidate_is_resolved(self):
        index = FakeImplementationIndex({CHARGE.method_id: [PAYPAL]})
        resolver = ImplementationResolver(index)
        other = make_method("Charge", "LegacyGateway")
        resolution = await resolver.choose_among([CHARGE, other])
        assert resolution.method == PAYPAL
        assert resolution.resolved_from == "IPaymentGateway"


# ============================================================================
# match_candidate()
# ============================================================================

class TestMatchCandidate:

    def test_matches_by_method_id(self):
        assert match_candidate(PAYPAL.method_id, [STRIPE, PAYPAL]) == PAYPAL

    def test_matches_by_simple_type_name(self):
        assert match_candidate("  PayPalGateway \n", [STRIPE, PAYPAL]) == PAYPAL

    def test_matches_by_qualified_method_name(self):
        assert match_candidate("Shop.Payments.Stripe.StripeGateway.Charge", [PAYPAL, STRIPE]) == STRIPE

    def test_descriptor_must_be_a_candidate(self):
        assert match_candidate(ADYEN, [STRIPE, PAYPAL]) is None

    def test_blank_and_foreign_answers(self):
        assert match_candidate("", [STRIPE]) is None
        assert match_candidate(42, [STRIPE]) is None
        assert match_candidate("Charge", [STRIPE, PAYPAL]) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
