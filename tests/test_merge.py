from datetime import datetime

from merge import merge_update

NOW = datetime(2024, 6, 1, 10, 30)


def existing_member(**overrides):
    doc = {
        'name': 'Ravi Kumar',
        'address': '12 MG Road, Pune',
        'dob': datetime(1990, 5, 20),
        'healthConditions': 'asthma',
        'membershipDuration': 3,
        'membershipStartDate': datetime(2024, 1, 15),
        'membershipEndDate': datetime(2024, 4, 15),
        'paidFee': 3000,
        'pendingFee': 500,
        'workoutPlan': 'Push/Pull/Legs',
        'bodyWeight': 82.5,
        'bodyMeasurements': {'chest': 90, 'waist': 80},
        'previousWeights': [{'date': datetime(2024, 2, 1), 'weight': 85}],
        'mobileNumber': '9876543210',
        'emergencyContactNumber': '9123456780',
        'photo': '/public/old.jpg',
        'createdAt': datetime(2024, 1, 15, 9),
    }
    doc.update(overrides)
    return doc


def test_protected_fields_carried_forward():
    existing = existing_member()
    result = merge_update({'address': 'New address'}, existing, now=NOW).fields
    assert result['address'] == 'New address'
    for field in ('name', 'dob', 'healthConditions', 'paidFee', 'pendingFee', 'workoutPlan',
                  'mobileNumber', 'emergencyContactNumber'):
        assert result[field] == existing[field]
    assert result['createdAt'] == existing['createdAt']


def test_measurements_shallow_merge():
    result = merge_update({'bodyMeasurements': {'chest': 100}}, existing_member(), now=NOW).fields
    assert result['bodyMeasurements'] == {'chest': 100, 'waist': 80}


def test_measurements_kept_when_not_supplied():
    existing = existing_member()
    result = merge_update({}, existing, now=NOW).fields
    assert result['bodyMeasurements'] == {'chest': 90, 'waist': 80}
    assert result['bodyMeasurements'] is not existing['bodyMeasurements']


def test_weight_change_appends_old_weight():
    existing = existing_member()
    result = merge_update({'bodyWeight': 80}, existing, now=NOW).fields
    assert result['bodyWeight'] == 80
    assert result['previousWeights'] == [
        {'date': datetime(2024, 2, 1), 'weight': 85},
        {'date': NOW, 'weight': 82.5},
    ]
    # stored history is not touched in place
    assert len(existing['previousWeights']) == 1


def test_same_weight_appends_nothing():
    result = merge_update({'bodyWeight': 82.5}, existing_member(), now=NOW).fields
    assert result['bodyWeight'] == 82.5
    assert len(result['previousWeights']) == 1


def test_missing_weight_keeps_weight_and_history():
    result = merge_update({'name': 'Ravi K'}, existing_member(), now=NOW).fields
    assert result['bodyWeight'] == 82.5
    assert result['previousWeights'] == [{'date': datetime(2024, 2, 1), 'weight': 85}]


def test_first_weight_has_no_history_entry():
    result = merge_update({'bodyWeight': 70}, existing_member(bodyWeight=None, previousWeights=[]), now=NOW).fields
    assert result['bodyWeight'] == 70
    assert result['previousWeights'] == []


def test_client_history_is_ignored():
    result = merge_update({'previousWeights': []}, existing_member(), now=NOW).fields
    assert len(result['previousWeights']) == 1


def test_duration_recomputes_from_existing_start():
    result = merge_update({'membershipDuration': 6}, existing_member(), now=NOW).fields
    assert result['membershipStartDate'] == datetime(2024, 1, 15)
    assert result['membershipEndDate'] == datetime(2024, 7, 15)
    assert result['membershipDuration'] == 6


def test_duration_with_new_start_date():
    result = merge_update(
        {'membershipDuration': 1, 'membershipStartDate': '2024-06-01'}, existing_member(), now=NOW
    ).fields
    assert result['membershipStartDate'] == datetime(2024, 6, 1)
    assert result['membershipEndDate'] == datetime(2024, 7, 1)


def test_duration_without_any_start_uses_now():
    result = merge_update({'membershipDuration': 1}, existing_member(membershipStartDate=None), now=NOW).fields
    assert result['membershipStartDate'] == NOW
    assert result['membershipEndDate'] == datetime(2024, 7, 1)


def test_no_duration_keeps_all_membership_fields():
    result = merge_update(
        {'membershipStartDate': '2025-01-01', 'membershipEndDate': '2030-01-01'}, existing_member(), now=NOW
    ).fields
    assert result['membershipStartDate'] == datetime(2024, 1, 15)
    assert result['membershipEndDate'] == datetime(2024, 4, 15)
    assert result['membershipDuration'] == 3


def test_new_photo_reports_replaced_reference():
    result = merge_update({}, existing_member(), photo='/public/new.jpg', now=NOW)
    assert result.fields['photo'] == '/public/new.jpg'
    assert result.replaced_photo == '/public/old.jpg'


def test_no_photo_keeps_existing():
    result = merge_update({}, existing_member(), now=NOW)
    assert result.fields['photo'] == '/public/old.jpg'
    assert result.replaced_photo is None
