"""Auto-linking donations to open requests by food label and capacity."""

from models import Request
from services.matching import find_match, labels_match, normalize_label, select_match


def _request(id, food, requested, fulfilled=0, status="open"):
    return Request(
        id=id,
        requester_id=1,
        food_needed=food,
        quantity_label=f"{requested}",
        numeric_requested=requested,
        fulfilled_quantity=fulfilled,
        location="x",
        status=status,
    )


class TestLabels:

    def test_normalize_trims_and_folds_case(self):
        assert normalize_label("  Basmati RICE ") == "basmati rice"

    def test_containment_is_symmetric(self):
        assert labels_match("Rice", "basmati rice")
        assert labels_match("basmati rice", "rice")

    def test_unrelated_labels_do_not_match(self):
        assert not labels_match("bread", "rice")

    def test_token_overlap_alone_is_not_a_match(self):
        assert not labels_match("rice pudding", "fried rice")

    def test_blank_labels_never_match(self):
        assert not labels_match("   ", "rice")


class TestSelectMatch:

    def test_first_fit_in_given_order(self):
        candidates = [
            _request(1, "rice", 100, 95),
            _request(2, "rice", 100, 50),
            _request(3, "rice", 20),
        ]
        chosen = select_match("rice", 15, candidates)
        assert chosen.id == 2

    def test_remaining_equal_to_quantity_is_enough(self):
        chosen = select_match("rice", 15, [_request(1, "rice", 20, 5)])
        assert chosen.id == 1

    def test_fulfilled_requests_are_skipped(self):
        candidates = [_request(1, "rice", 20, 20, status="fulfilled")]
        assert select_match("rice", 1, candidates) is None

    def test_no_match_leaves_donation_unlinked(self):
        assert select_match("bread", 5, [_request(1, "rice", 50)]) is None


class TestFindMatch:

    def test_oldest_request_with_room_is_chosen(self, session, make_request):
        make_request(food_needed="rice", quantity_label="5 kg")
        older = make_request(food_needed="rice", quantity_label="30 kg")
        make_request(food_needed="rice", quantity_label="40 kg")

        chosen = find_match(session, "Rice", 15)
        assert chosen.id == older.id

    def test_fulfilled_request_is_never_selected(self, session, make_request):
        make_request(food_needed="rice", quantity_label="20 kg", fulfilled_quantity=20)

        assert find_match(session, "rice", 1) is None

    def test_accepted_request_is_a_candidate(self, session, make_request):
        req = make_request(food_needed="rice", quantity_label="20 kg", fulfilled_quantity=5)
        assert req.status == "accepted"

        assert find_match(session, "rice", 15).id == req.id
