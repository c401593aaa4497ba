import pytest

from mintgate import CallContext, Channel, PaymentMode, SaleController
from mintgate.constants import INTERFACE_ERC2981, INTERFACE_ERC4494, INTERFACE_ERC721, ZERO_ADDRESS
from mintgate.errors import (
    ChannelInactive,
    ChannelSupplyExceeded,
    ConfigurationError,
    GlobalSupplyExceeded,
    InsufficientPayment,
    InvalidProof,
    InvalidSubCap,
    NonPayable,
    NonexistentToken,
    NotOperator,
    QuotaExceeded,
    TransferToNonReceiver,
    ValueTransferFailed,
    ZeroAddress,
    ZeroQuantity,
    decode_revert_reason,
)
from mintgate.events import Minted

from conftest import (
    ALICE,
    BOB,
    BrokenAccount,
    CAROL,
    DAVE,
    OPERATOR,
    PRESALE_PRICE,
    PUBLIC_PRICE,
    ReentrantMinter,
    RejectingReceiver,
    deploy,
    make_profile,
)


def paying(account, amount):
    return CallContext(account.address, amount)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


def test_public_mint_assigns_sequential_ids(open_sale):
    first = open_sale.mint(paying(ALICE, 2 * PUBLIC_PRICE), ALICE.address, 2)
    second = open_sale.mint(paying(BOB, PUBLIC_PRICE), CAROL.address, 1)
    assert (first, second) == (1, 3)
    assert open_sale.owner_of(3) == CAROL.address
    assert open_sale.balance_of(ALICE.address) == 2
    assert open_sale.total_minted() == open_sale.total_supply() == 3
    assert open_sale.claimed(Channel.PUBLIC, BOB.address) == 1


def test_inactive_channel(sale):
    with pytest.raises(ChannelInactive):
        sale.mint(paying(ALICE, PUBLIC_PRICE), ALICE.address, 1)


def test_insufficient_payment(open_sale):
    with pytest.raises(InsufficientPayment):
        open_sale.mint(paying(ALICE, 3 * PUBLIC_PRICE - 1), ALICE.address, 3)


def test_presale_requires_membership(open_sale, allowlist):
    open_sale.presale_mint(paying(ALICE, PRESALE_PRICE), ALICE.address, 1, allowlist.proof(ALICE.address))
    with pytest.raises(InvalidProof):
        open_sale.presale_mint(paying(CAROL, PRESALE_PRICE), CAROL.address, 1, allowlist.proof(ALICE.address))
    assert open_sale.channel_minted(Channel.PRESALE) == 1


def test_proof_binds_to_caller_not_recipient(open_sale, allowlist):
    open_sale.free_mint(CallContext(BOB.address), CAROL.address, 2, allowlist.proof(BOB.address))
    assert open_sale.balance_of(CAROL.address) == 2
    assert open_sale.claimed(Channel.FREE, BOB.address) == 2
    assert open_sale.claimed(Channel.FREE, CAROL.address) == 0


def test_free_mint_is_not_payable(open_sale, allowlist):
    with pytest.raises(NonPayable):
        open_sale.free_mint(paying(ALICE, 1), ALICE.address, 1, allowlist.proof(ALICE.address))


def test_free_channel_quota(open_sale, allowlist):
    proof = allowlist.proof(DAVE.address)
    open_sale.free_mint(CallContext(DAVE.address), DAVE.address, 100, proof)
    with pytest.raises(QuotaExceeded):
        open_sale.free_mint(CallContext(DAVE.address), DAVE.address, 1, proof)


@pytest.mark.parametrize("quantity", [0, -3])
def test_zero_quantity_is_rejected(open_sale, quantity):
    with pytest.raises(ZeroQuantity):
        open_sale.mint(paying(ALICE, 0), ALICE.address, quantity)


def test_zero_recipient_is_rejected(open_sale):
    with pytest.raises(ZeroAddress):
        open_sale.mint(paying(ALICE, PUBLIC_PRICE), "0x" + "00" * 20, 1)


def test_recipient_contract_must_accept_tokens(open_sale, chain):
    sink = chain.deploy(RejectingReceiver())
    before = chain.balance_of(ALICE.address)
    with pytest.raises(TransferToNonReceiver):
        open_sale.mint(paying(ALICE, PUBLIC_PRICE), sink.address, 1)
    assert open_sale.total_minted() == 0
    assert chain.balance_of(ALICE.address) == before


# ---------------------------------------------------------------------------
# Check order
# ---------------------------------------------------------------------------


def test_inactive_reported_before_payment(sale):
    with pytest.raises(ChannelInactive):
        sale.mint(paying(ALICE, 0), ALICE.address, 1)


def test_payment_reported_before_supply(chain, op):
    sale = deploy(chain, make_profile(max_supply=5))
    sale.set_channel_active(op, Channel.PUBLIC, True)
    with pytest.raises(InsufficientPayment):
        sale.mint(paying(ALICE, 0), ALICE.address, 6)
    with pytest.raises(GlobalSupplyExceeded):
        sale.mint(paying(ALICE, 6 * PUBLIC_PRICE), ALICE.address, 6)


def test_supply_reported_before_proof(open_sale, op):
    open_sale.set_sub_cap(op, Channel.PRESALE, 0)
    with pytest.raises(ChannelSupplyExceeded):
        open_sale.presale_mint(paying(CAROL, PRESALE_PRICE), CAROL.address, 1, [])


def test_proof_reported_before_quota(open_sale, op):
    open_sale.set_max_per_address(op, Channel.FREE, 1)
    with pytest.raises(InvalidProof):
        open_sale.free_mint(CallContext(CAROL.address), CAROL.address, 2, [])


def test_inactive_reported_before_zero_recipient(sale):
    with pytest.raises(ChannelInactive):
        sale.mint(paying(ALICE, PUBLIC_PRICE), ZERO_ADDRESS, 1)


def test_quota_reported_before_zero_recipient(open_sale, op, allowlist):
    open_sale.set_max_per_address(op, Channel.FREE, 1)
    with pytest.raises(QuotaExceeded):
        open_sale.free_mint(CallContext(ALICE.address), ZERO_ADDRESS, 2, allowlist.proof(ALICE.address))
    assert open_sale.claimed(Channel.FREE, ALICE.address) == 0


def test_ceiling_reported_before_zero_recipient(chain, op):
    sale = deploy(chain, make_profile(max_supply=10))
    with pytest.raises(GlobalSupplyExceeded):
        sale.reserve_mint(op, ZERO_ADDRESS, 11)
    with pytest.raises(ZeroAddress):
        sale.reserve_mint(op, ZERO_ADDRESS, 1)
    assert sale.total_minted() == 0


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def test_refund_mode_returns_change(open_sale, chain):
    before = chain.balance_of(ALICE.address)
    open_sale.mint(paying(ALICE, 5 * PUBLIC_PRICE), ALICE.address, 2)
    assert chain.balance_of(ALICE.address) == before - 2 * PUBLIC_PRICE
    assert chain.balance_of(open_sale.address) == 2 * PUBLIC_PRICE
    [event] = chain.events(Minted)
    assert (event.channel, event.quantity, event.paid) == (Channel.PUBLIC, 2, 5 * PUBLIC_PRICE)


def test_refund_mode_pushes_royalty_per_unit(chain, op):
    profile = make_profile(push_royalty_on_mint=True, royalty_receiver=CAROL.address, royalty_rate=5_000)
    sale = deploy(chain, profile)
    sale.set_channel_active(op, Channel.PUBLIC, True)
    carol_before = chain.balance_of(CAROL.address)
    sale.mint(paying(ALICE, 3 * PUBLIC_PRICE), ALICE.address, 3)
    royalty = 3 * (PUBLIC_PRICE * 5_000 // 100_000)
    assert chain.balance_of(CAROL.address) == carol_before + royalty
    assert chain.balance_of(sale.address) == 3 * PUBLIC_PRICE - royalty


def test_full_forward_mode_sends_everything(chain, op):
    profile = make_profile(payment_mode=PaymentMode.FULL_FORWARD, beneficiary=DAVE.address)
    sale = deploy(chain, profile)
    sale.set_channel_active(op, Channel.PUBLIC, True)
    alice_before, dave_before = chain.balance_of(ALICE.address), chain.balance_of(DAVE.address)
    sale.mint(paying(ALICE, 3 * PUBLIC_PRICE), ALICE.address, 2)
    assert chain.balance_of(ALICE.address) == alice_before - 3 * PUBLIC_PRICE
    assert chain.balance_of(DAVE.address) == dave_before + 3 * PUBLIC_PRICE
    assert chain.balance_of(sale.address) == 0


def test_failed_payout_aborts_the_mint(chain, op):
    sink = chain.deploy(RejectingReceiver(b"\xde\xad\xbe\xef"))
    profile = make_profile(payment_mode=PaymentMode.FULL_FORWARD, beneficiary=DAVE.address)
    sale = deploy(chain, profile)
    sale.set_beneficiary(op, sink.address)
    sale.set_channel_active(op, Channel.PUBLIC, True)
    before = chain.balance_of(ALICE.address)
    log_count = len(chain.logs)
    with pytest.raises(ValueTransferFailed) as info:
        sale.mint(paying(ALICE, PUBLIC_PRICE), ALICE.address, 1)
    assert info.value.reason == b"\xde\xad\xbe\xef"
    assert info.value.revert_data == b"\xde\xad\xbe\xef"
    assert sale.total_minted() == 0
    assert sale.claimed(Channel.PUBLIC, ALICE.address) == 0
    assert sale.total_supply() == 0
    assert chain.balance_of(ALICE.address) == before
    assert len(chain.logs) == log_count


def test_crashing_beneficiary_aborts_the_mint(chain, op):
    broken = chain.deploy(BrokenAccount())
    profile = make_profile(payment_mode=PaymentMode.FULL_FORWARD, beneficiary=DAVE.address)
    sale = deploy(chain, profile)
    sale.set_beneficiary(op, broken.address)
    sale.set_channel_active(op, Channel.PUBLIC, True)
    before = chain.balance_of(ALICE.address)
    with pytest.raises(ValueTransferFailed) as info:
        sale.mint(paying(ALICE, PUBLIC_PRICE), ALICE.address, 1)
    assert info.value.target == broken.address
    assert info.value.reason == b""
    assert sale.total_minted() == 0
    assert chain.balance_of(ALICE.address) == before
    assert chain.balance_of(broken.address) == 0


def test_beneficiary_only_in_full_forward_mode(sale, op):
    with pytest.raises(ConfigurationError):
        sale.set_beneficiary(op, DAVE.address)


# ---------------------------------------------------------------------------
# Re-entrancy
# ---------------------------------------------------------------------------


def test_reentry_through_refund_aborts_everything(open_sale, chain):
    attacker = chain.deploy(ReentrantMinter(open_sale))
    chain.fund(attacker.address, 10 * PUBLIC_PRICE)
    with pytest.raises(ValueTransferFailed) as info:
        open_sale.mint(CallContext(attacker.address, 2 * PUBLIC_PRICE), attacker.address, 1)
    assert "re-entered" in decode_revert_reason(info.value.reason)
    assert open_sale.total_minted() == 0
    assert chain.balance_of(attacker.address) == 10 * PUBLIC_PRICE
    assert not open_sale.guard.locked


def test_reentry_attempt_is_refused_but_outer_call_completes(open_sale, chain):
    attacker = chain.deploy(ReentrantMinter(open_sale, swallow=True))
    chain.fund(attacker.address, 10 * PUBLIC_PRICE)
    open_sale.mint(CallContext(attacker.address, 2 * PUBLIC_PRICE), attacker.address, 1)
    assert attacker.blocked == 1
    assert open_sale.total_minted() == 1
    assert chain.balance_of(attacker.address) == 9 * PUBLIC_PRICE


# ---------------------------------------------------------------------------
# Reserve channel
# ---------------------------------------------------------------------------


def test_reserve_is_operator_only(sale, op):
    with pytest.raises(NotOperator):
        sale.reserve_mint(CallContext(ALICE.address), ALICE.address, 1)
    assert sale.reserve_mint(op, ALICE.address, 25) == 1
    assert sale.channel_minted(Channel.RESERVE) == 25


def test_reserve_skips_activation_payment_and_allowlist(sale, op, chain):
    before = chain.balance_of(OPERATOR.address)
    sale.reserve_mint(op, BOB.address, 3)
    assert sale.balance_of(BOB.address) == 3
    assert chain.balance_of(OPERATOR.address) == before


def test_reserve_still_respects_ceiling(chain, op):
    sale = deploy(chain, make_profile(max_supply=10))
    sale.reserve_mint(op, ALICE.address, 10)
    with pytest.raises(GlobalSupplyExceeded):
        sale.reserve_mint(op, ALICE.address, 1)


def test_reserve_is_not_payable(sale):
    with pytest.raises(NonPayable):
        sale.reserve_mint(CallContext(OPERATOR.address, 1), ALICE.address, 1)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_setters_are_operator_only(sale):
    stranger = CallContext(ALICE.address)
    with pytest.raises(NotOperator):
        sale.set_channel_active(stranger, Channel.PUBLIC, True)
    with pytest.raises(NotOperator):
        sale.set_price(stranger, Channel.PUBLIC, 0)
    with pytest.raises(NotOperator):
        sale.set_default_royalty(stranger, ALICE.address, 1)
    with pytest.raises(NotOperator):
        sale.set_base_uri(stranger, "ipfs://x/")
    assert sale.config_version() == 0


def test_every_setter_bumps_the_config_version(sale, op, allowlist):
    sale.set_channel_active(op, Channel.PUBLIC, True)
    sale.set_price(op, Channel.PUBLIC, 1)
    sale.set_max_per_address(op, Channel.PUBLIC, 4)
    sale.set_sub_cap(op, Channel.FREE, 10)
    sale.set_allowlist_root(op, Channel.FREE, allowlist.root)
    assert sale.config_version() == 5
    state = sale.channel_state(Channel.PUBLIC)
    assert (state.active, state.price, state.max_per_address) == (True, 1, 4)
    assert sale.channel_state(Channel.FREE).allowlist_root == allowlist.root


def test_price_change_applies_immediately(open_sale, op):
    open_sale.set_price(op, Channel.PUBLIC, 0)
    open_sale.mint(paying(ALICE, 0), ALICE.address, 1)
    with pytest.raises(ConfigurationError):
        open_sale.set_price(op, Channel.FREE, 1)


def test_sub_cap_bounds(open_sale, op, allowlist):
    open_sale.free_mint(CallContext(ALICE.address), ALICE.address, 5, allowlist.proof(ALICE.address))
    with pytest.raises(InvalidSubCap):
        open_sale.set_sub_cap(op, Channel.FREE, 10_001)
    with pytest.raises(InvalidSubCap):
        open_sale.set_sub_cap(op, Channel.FREE, 4)
    with pytest.raises(ConfigurationError):
        open_sale.set_sub_cap(op, Channel.PUBLIC, 10)
    open_sale.set_sub_cap(op, Channel.FREE, 5)


def test_closing_a_channel(open_sale, op):
    open_sale.set_channel_active(op, Channel.PUBLIC, False)
    with pytest.raises(ChannelInactive):
        open_sale.mint(paying(ALICE, PUBLIC_PRICE), ALICE.address, 1)


def test_ownership_transfer(sale, op):
    sale.transfer_ownership(op, ALICE.address)
    assert sale.owner() == ALICE.address
    with pytest.raises(NotOperator):
        sale.set_channel_active(op, Channel.PUBLIC, True)
    sale.set_channel_active(CallContext(ALICE.address), Channel.PUBLIC, True)
    with pytest.raises(ZeroAddress):
        sale.transfer_ownership(CallContext(ALICE.address), "0x" + "00" * 20)
    sale.renounce_ownership(CallContext(ALICE.address))
    with pytest.raises(NotOperator):
        sale.reserve_mint(CallContext(ALICE.address), ALICE.address, 1)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def test_token_uri_reveal(sale, op):
    sale.reserve_mint(op, ALICE.address, 3)
    assert sale.token_uri(1) == "ipfs://hidden.json"
    sale.set_reveal_threshold(op, 2)
    assert sale.token_uri(1) == "ipfs://hidden.json"
    sale.set_base_uri(op, "ipfs://revealed/")
    assert sale.token_uri(1) == "ipfs://revealed/1"
    assert sale.token_uri(2) == "ipfs://revealed/2"
    assert sale.token_uri(3) == "ipfs://hidden.json"
    with pytest.raises(NonexistentToken):
        sale.token_uri(4)


def test_interfaces(sale):
    assert sale.supports_interface(INTERFACE_ERC721)
    assert sale.supports_interface(INTERFACE_ERC2981)
    assert sale.supports_interface(INTERFACE_ERC4494)
    assert not sale.supports_interface(b"\xff\xff\xff\xff")
    assert (sale.name(), sale.symbol(), sale.max_supply()) == ("Gatekeepers", "GATE", 10_000)


def test_entrypoint_surface():
    members = {name: member for name, member in vars(SaleController).items() if callable(member)}
    public = {name for name, member in members.items() if getattr(member, "is_public", False)}
    views = {name for name, member in members.items() if getattr(member, "is_view", False)}
    exposed = {name for name in members if not name.startswith("_")} - {"receive"}
    assert public | views == exposed
    assert not public & views
    assert {name for name in public if members[name].payable} == {"mint", "presale_mint"}
    assert {name for name in public if members[name].guarded} == {
        "mint",
        "presale_mint",
        "free_mint",
        "reserve_mint",
        "exec_transaction",
    }
    assert {"nonces", "domain_separator", "royalty_info", "token_uri", "supports_interface"} <= views


def test_queries_do_not_mutate(sale, op, chain):
    sale.reserve_mint(op, ALICE.address, 1)
    sale.set_default_royalty(op, CAROL.address, 2_500)
    log_count, version = len(chain.logs), sale.config_version()
    for _ in range(2):
        assert sale.nonces(1) == 0
        assert sale.royalty_info(1, 100_000) == (CAROL.address, 2_500)
        sale.domain_separator()
    assert len(chain.logs) == log_count
    assert sale.config_version() == version
