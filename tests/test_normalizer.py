from normalizer import ABSENT, FieldValue, coerce_value, normalize_fields


def test_numeric_strings_become_numbers():
    assert coerce_value('3') == FieldValue('number', 3)
    assert coerce_value('82.5') == FieldValue('number', 82.5)
    assert coerce_value('-4') == FieldValue('number', -4)
    assert isinstance(coerce_value('3').value, int)


def test_empty_string_is_absent():
    assert coerce_value('') == ABSENT
    assert coerce_value(None) == ABSENT


def test_json_looking_strings_are_parsed():
    assert coerce_value('{"chest": 100}') == FieldValue('structured', {'chest': 100})
    assert coerce_value('[1, 2]') == FieldValue('structured', [1, 2])


def test_malformed_json_is_kept_verbatim():
    assert coerce_value('{chest: 100') == FieldValue('string', '{chest: 100')
    assert coerce_value('[oops') == FieldValue('string', '[oops')


def test_plain_text_and_booleans_untouched():
    assert coerce_value('Ravi') == FieldValue('string', 'Ravi')
    assert coerce_value('2024-01-15') == FieldValue('string', '2024-01-15')
    assert coerce_value('true') == FieldValue('string', 'true')
    assert coerce_value(True) == FieldValue('string', True)


def test_typed_values_pass_through():
    assert coerce_value(12) == FieldValue('number', 12)
    assert coerce_value({'waist': 80}) == FieldValue('structured', {'waist': 80})


def test_normalize_fields_drops_absent_and_keeps_order():
    raw = {'name': 'Ravi', 'pendingFee': '', 'paidFee': '3000', 'bodyMeasurements': '{"chest": 90}', 'note': 'x'}
    result = normalize_fields(raw)
    assert list(result) == ['name', 'paidFee', 'bodyMeasurements', 'note']
    assert result == {'name': 'Ravi', 'paidFee': 3000, 'bodyMeasurements': {'chest': 90}, 'note': 'x'}
