import json

import pytest

import boardreceipts as receipts
from conftest import PAYER_1, PROVIDER, TARGET, OTHER_TARGET


class TestDecodeReceipt:
    def test_decodes_payer_comment_amount_and_target(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 2100, comment="great stream", createdAt=1700000123)
        record, error = receipts.decodeReceipt(receipt, TARGET)
        assert error is None
        assert record.id == "r1"
        assert record.payerPubkey == PAYER_1
        assert record.amountSats == 2100
        assert record.comment == "great stream"
        assert record.timestampSec == 1700000123
        assert record.targetId == TARGET
        assert record.bolt11 == "lnbcfake2100"

    def test_payer_is_the_request_author_not_the_receipt_signer(self, makeReceipt):
        record, _ = receipts.decodeReceipt(makeReceipt("r1", PAYER_1, 21))
        assert record.payerPubkey != PROVIDER

    def test_amount_comes_from_invoice_not_request_amount_tag(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21, requestAmountMsat=999000000)
        record, _ = receipts.decodeReceipt(receipt)
        assert record.amountSats == 21

    def test_invoice_without_amount_counts_as_zero(self, makeReceipt):
        record, error = receipts.decodeReceipt(makeReceipt("r1", PAYER_1, None))
        assert error is None
        assert record.amountSats == 0

    def test_missing_description_is_malformed(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t for t in receipt.tags if t[0] != "description"]
        record, error = receipts.decodeReceipt(receipt)
        assert record is None
        assert isinstance(error, receipts.MalformedReceipt)
        assert error.receiptId == "r1"

    @pytest.mark.parametrize("description", ["{not json", "[1, 2]", json.dumps({"content": "no pubkey"})])
    def test_bad_zap_request_is_malformed(self, makeReceipt, description):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t if t[0] != "description" else ["description", description] for t in receipt.tags]
        record, error = receipts.decodeReceipt(receipt)
        assert record is None
        assert isinstance(error, receipts.MalformedReceipt)

    def test_missing_invoice_is_malformed(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t for t in receipt.tags if t[0] != "bolt11"]
        _, error = receipts.decodeReceipt(receipt)
        assert isinstance(error, receipts.MalformedReceipt)

    def test_undecodable_invoice(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t if t[0] != "bolt11" else ["bolt11", "lnbc1garbage"] for t in receipt.tags]
        record, error = receipts.decodeReceipt(receipt)
        assert record is None
        assert isinstance(error, receipts.InvoiceDecodeError)
        assert isinstance(error, receipts.DecodeError)

    @pytest.mark.parametrize("description", [5, None, ["a"], {"pubkey": PAYER_1}])
    def test_non_string_description_is_malformed(self, makeReceipt, description):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t if t[0] != "description" else ["description", description] for t in receipt.tags]
        record, error = receipts.decodeReceipt(receipt)
        assert record is None
        assert isinstance(error, receipts.MalformedReceipt)

    def test_non_string_invoice_is_malformed(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [t if t[0] != "bolt11" else ["bolt11", 2100] for t in receipt.tags]
        _, error = receipts.decodeReceipt(receipt)
        assert isinstance(error, receipts.MalformedReceipt)

    def test_tags_that_are_not_lists_are_skipped(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = [7, None, "description", {"bolt11": "x"}] + receipt.tags
        record, error = receipts.decodeReceipt(receipt)
        assert error is None
        assert record.amountSats == 21

    def test_tags_not_a_list_is_malformed(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = {"description": "{}"}
        _, error = receipts.decodeReceipt(receipt)
        assert isinstance(error, receipts.MalformedReceipt)

    @pytest.mark.parametrize("createdAt", ["yesterday", [1700000000]])
    def test_bad_created_at_is_malformed(self, makeReceipt, createdAt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.created_at = createdAt
        record, error = receipts.decodeReceipt(receipt)
        assert record is None
        assert isinstance(error, receipts.MalformedReceipt)

    def test_discard_returns_none_for_bad_receipts(self, makeReceipt):
        receipt = makeReceipt("r1", PAYER_1, 21)
        receipt.tags = []
        assert receipts.decodeReceiptOrDiscard(receipt) is None
        assert receipts.decodeReceiptOrDiscard(makeReceipt("r2", PAYER_1, 21)).id == "r2"


class TestTargetId:
    def test_expected_target_wins_when_tagged(self):
        tags = [["e", OTHER_TARGET], ["e", TARGET]]
        assert receipts.getTargetId(tags, TARGET) == TARGET

    def test_coordinate_preferred_over_note(self):
        coordinate = f"30311:{PAYER_1}:stream"
        tags = [["e", TARGET], ["a", coordinate]]
        assert receipts.getTargetId(tags) == coordinate

    def test_no_target_tags(self):
        assert receipts.getTargetId([["p", PAYER_1]]) is None

    def test_tags_without_values_are_skipped(self):
        assert receipts.findTag([["bolt11"], ["bolt11", "lnbcfake1"]], "bolt11") == "lnbcfake1"
