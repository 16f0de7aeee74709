"""
Cosmos LCD Adapter Tests (Osmosis and Injective).
"""

import pytest

from chain_adapters.classification import SELF_TRANSFER_TAG
from chain_adapters.models import FetchOptions, TransactionType
from chain_adapters.providers.cosmos import parse_coin_string
from chain_adapters.providers.injective import InjectiveAdapter
from chain_adapters.providers.osmosis import OsmosisAdapter
from conftest import FakeResponse, FakeSession


OSMO_ME = "osmo1" + "q" * 38
OSMO_OTHER = "osmo1" + "p" * 38
INJ_ME = "inj1" + "q" * 38
INJ_OTHER = "inj1" + "p" * 38


def lcd_tx(txhash, msg, events=None, fee=None, code=0, timestamp="2024-03-01T12:00:00Z"):
    return {
        "txhash": txhash,
        "code": code,
        "timestamp": timestamp,
        "tx": {
            "body": {"messages": [msg]},
            "auth_info": {"fee": {"amount": fee or []}},
        },
        "events": events or [],
    }


def event(event_type, *pairs):
    return {"type": event_type, "attributes": [{"key": k, "value": v} for k, v in pairs]}


@pytest.fixture
def osmosis():
    return OsmosisAdapter()


@pytest.fixture
def injective():
    return InjectiveAdapter()


class TestCoinParsing:
    """Tests for coin strings and denoms."""

    def test_parse_coin_string(self):
        assert parse_coin_string("100uosmo,5ibc/ABC") == [("100", "uosmo"), ("5", "ibc/ABC")]

    def test_osmosis_symbols(self, osmosis):
        assert osmosis.denom_symbol("uosmo") == "OSMO"
        assert osmosis.denom_symbol("gamm/pool/1") == "GAMM-1"
        assert osmosis.denom_symbol("ibc/abcdef123456") == "IBC-ABCDEF"

    def test_injective_decimals(self, injective):
        assert injective.parse_amount("1500000000000000000", "inj") == 1.5
        assert injective.parse_amount("2500000", "peggy0xdac17f958d2ee523a2206206994597c13d831ec7") == 2.5
        assert injective.denom_symbol("peggy0xdac17f958d2ee523a2206206994597c13d831ec7") == "USDT"

    def test_address_validation_is_case_insensitive(self, osmosis):
        assert osmosis.validate_address(OSMO_ME.upper())
        assert not osmosis.validate_address("cosmos1" + "q" * 38)


class TestCosmosClassification:
    """Message-type driven classification."""

    def test_send_charges_fee_to_sender(self, osmosis):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": OSMO_ME,
            "to_address": OSMO_OTHER,
            "amount": [{"denom": "uosmo", "amount": "2500000"}],
        }
        tx = osmosis.classify(lcd_tx("S1", msg, fee=[{"denom": "uosmo", "amount": "5000"}]), OSMO_ME)

        assert tx.type is TransactionType.SEND
        assert tx.sent_quantity == 2.5
        assert tx.sent_currency == "OSMO"
        assert tx.fee_amount == 0.005

    def test_receive_has_no_fee(self, osmosis):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": OSMO_OTHER,
            "to_address": OSMO_ME,
            "amount": [{"denom": "uosmo", "amount": "1000000"}],
        }
        tx = osmosis.classify(lcd_tx("R1", msg, fee=[{"denom": "uosmo", "amount": "5000"}]), OSMO_ME)

        assert tx.type is TransactionType.RECEIVE
        assert tx.received_quantity == 1.0
        assert tx.fee_amount is None

    def test_self_transfer(self, osmosis):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": OSMO_ME,
            "to_address": OSMO_ME,
            "amount": [{"denom": "uosmo", "amount": "1000000"}],
        }
        tx = osmosis.classify(lcd_tx("SELF", msg), OSMO_ME)

        assert tx.type is TransactionType.SEND
        assert tx.tag == SELF_TRANSFER_TAG
        assert tx.sent_quantity == tx.received_quantity == 1.0

    def test_self_transfer_ignores_address_case(self, osmosis):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": OSMO_ME,
            "to_address": OSMO_ME.upper(),
            "amount": [{"denom": "uosmo", "amount": "1000000"}],
        }
        tx = osmosis.classify(lcd_tx("SELF2", msg), OSMO_ME)

        assert tx.tag == SELF_TRANSFER_TAG
        assert tx.notes == "Self-transfer"

    def test_failed_tx_is_excluded(self, osmosis):
        msg = {"@type": "/cosmos.bank.v1beta1.MsgSend", "from_address": OSMO_ME}

        assert osmosis.classify(lcd_tx("F1", msg, code=5), OSMO_ME) is None

    def test_delegate_is_stake(self, injective):
        msg = {
            "@type": "/cosmos.staking.v1beta1.MsgDelegate",
            "delegator_address": INJ_ME,
            "validator_address": "injvaloper1xyz",
            "amount": {"denom": "inj", "amount": "2000000000000000000"},
        }
        tx = injective.classify(lcd_tx("D1", msg), INJ_ME)

        assert tx.type is TransactionType.STAKE
        assert tx.sent_quantity == 2.0
        assert tx.sent_currency == "INJ"
        assert tx.tag == "staked"

    def test_withdraw_rewards_is_claim(self, injective):
        msg = {
            "@type": "/cosmos.distribution.v1beta1.MsgWithdrawDelegatorReward",
            "delegator_address": INJ_ME,
            "validator_address": "injvaloper1xyz",
        }
        events = [event("withdraw_rewards", ("amount", "500000000000000000inj"))]
        tx = injective.classify(lcd_tx("C1", msg, events=events), INJ_ME)

        assert tx.type is TransactionType.CLAIM
        assert tx.received_quantity == 0.5

    def test_ibc_transfer_is_bridge(self, osmosis):
        msg = {
            "@type": "/ibc.applications.transfer.v1.MsgTransfer",
            "sender": OSMO_ME,
            "receiver": "cosmos1abc",
            "token": {"denom": "uosmo", "amount": "3000000"},
        }
        tx = osmosis.classify(lcd_tx("B1", msg), OSMO_ME)

        assert tx.type is TransactionType.BRIDGE
        assert tx.sent_quantity == 3.0

    def test_grant_is_approval(self, injective):
        msg = {"@type": "/cosmos.authz.v1beta1.MsgGrant", "granter": INJ_ME, "grantee": INJ_OTHER}

        assert injective.classify(lcd_tx("G1", msg), INJ_ME).type is TransactionType.APPROVAL

    def test_unknown_message_uses_net_flow_without_fee_leg(self, osmosis):
        msg = {"@type": "/some.module.v1.MsgDoThing", "sender": OSMO_ME}
        events = [
            event("coin_spent", ("spender", OSMO_ME), ("amount", "5000uosmo")),
            event("coin_spent", ("spender", OSMO_ME), ("amount", "1000000uosmo")),
            event("coin_received", ("receiver", OSMO_ME), ("amount", "2000000uion")),
        ]
        tx = osmosis.classify(
            lcd_tx("N1", msg, events=events, fee=[{"denom": "uosmo", "amount": "5000"}]),
            OSMO_ME,
        )

        assert tx.type is TransactionType.TRADE
        assert tx.sent_quantity == 1.0
        assert tx.received_quantity == 2.0
        assert tx.received_currency == "ION"
        assert tx.fee_amount == 0.005

    def test_lp_join_is_multi_asset(self, osmosis):
        msg = {
            "@type": "/osmosis.gamm.v1beta1.MsgJoinPool",
            "sender": OSMO_ME,
            "pool_id": "1",
            "share_out_amount": "100000000",
            "token_in_maxs": [
                {"denom": "uosmo", "amount": "1000000"},
                {"denom": "uion", "amount": "20000"},
            ],
        }
        tx = osmosis.classify(lcd_tx("LP1", msg), OSMO_ME)

        assert tx.type is TransactionType.LP_ADD
        assert tx.sent_currency == "OSMO"
        assert tx.additional_sent[0].currency == "ION"
        assert tx.received_currency == "GAMM-1"
        assert tx.is_multi_asset


class TestCosmosFetch:
    """Two query angles merged by txhash."""

    @pytest.mark.asyncio
    async def test_both_angles_same_hash_yield_one_transaction(self, make_fetcher):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": OSMO_ME,
            "to_address": OSMO_OTHER,
            "amount": [{"denom": "uosmo", "amount": "1000000"}],
        }
        shared = lcd_tx("DUP", msg)

        def route(method, url, params):
            return FakeResponse(200, {"tx_responses": [shared], "pagination": {"total": "1"}})

        session = FakeSession(route=route)
        adapter = OsmosisAdapter(make_fetcher(session))
        totals = []

        result = await adapter.fetch_transactions(OSMO_ME, FetchOptions(on_estimated_total=totals.append))

        assert [tx.tx_hash for tx in result] == ["DUP"]
        queries = [call["params"]["events"] for call in session.calls]
        assert queries == [f"message.sender='{OSMO_ME}'", f"transfer.recipient='{OSMO_ME}'"]
        assert totals == [1]

    @pytest.mark.asyncio
    async def test_cursor_pagination_follows_next_key(self, make_fetcher):
        msg = {
            "@type": "/cosmos.bank.v1beta1.MsgSend",
            "from_address": INJ_OTHER,
            "to_address": INJ_ME,
            "amount": [{"denom": "inj", "amount": "1000000000000000000"}],
        }

        def route(method, url, params):
            if "message.sender" in params["query"]:
                return FakeResponse(200, {"tx_responses": [], "pagination": {}})
            if params.get("pagination.key") == "next":
                return FakeResponse(200, {"tx_responses": [lcd_tx("T2", msg)], "pagination": {}})
            return FakeResponse(200, {
                "tx_responses": [lcd_tx("T1", msg, timestamp="2024-03-02T00:00:00Z")],
                "pagination": {"next_key": "next"},
            })

        session = FakeSession(route=route)
        adapter = InjectiveAdapter(make_fetcher(session))

        result = await adapter.fetch_transactions(INJ_ME, FetchOptions(limit=1))

        assert [tx.tx_hash for tx in result] == ["T2", "T1"]
        assert len(session.calls) == 3

    @pytest.mark.asyncio
    async def test_osmosis_resumes_both_angles_from_offset(self, make_fetcher):
        def route(method, url, params):
            return FakeResponse(200, {"tx_responses": [], "pagination": {"total": "0"}})

        session = FakeSession(route=route)
        adapter = OsmosisAdapter(make_fetcher(session))

        await adapter.fetch_transactions(OSMO_ME, FetchOptions(cursor="200"))

        assert [call["params"]["pagination.offset"] for call in session.calls] == [200, 200]

    @pytest.mark.asyncio
    async def test_injective_resumes_from_next_key(self, make_fetcher):
        def route(method, url, params):
            return FakeResponse(200, {"tx_responses": [], "pagination": {}})

        session = FakeSession(route=route)
        adapter = InjectiveAdapter(make_fetcher(session))

        await adapter.fetch_transactions(INJ_ME, FetchOptions(cursor="CgQIARAB"))

        assert [call["params"]["pagination.key"] for call in session.calls] == ["CgQIARAB", "CgQIARAB"]
