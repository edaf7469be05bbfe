from tally_engine.utils.formatters import amount_in_words, inr, plural, vch_emoji


def test_inr_uses_indian_grouping():
    assert inr(1234567) == "12,34,567.00"
    assert inr(999) == "999.00"
    assert inr(-505000) == "5,05,000.00"
    assert inr(None) == "0.00"
    assert inr(float("nan")) == "0.00"


def test_amount_in_words_indian_system():
    assert amount_in_words(123456.5) == (
        "One Lakh Twenty Three Thousand Four Hundred Fifty Six Rupees and Fifty Paise Only"
    )
    assert amount_in_words(10000000) == "One Crore Rupees Only"
    assert amount_in_words(0) == "Zero"


def test_voucher_emoji_and_plural():
    assert vch_emoji("Sales") == "🟢"
    assert vch_emoji("Purchase Order") == "🟠"
    assert vch_emoji("Stock Journal") == "📝"
    assert vch_emoji("Memo") == "⚪"
    assert plural(1, "bill", "bills") == "bill"
    assert plural(3, "bill", "bills") == "bills"
