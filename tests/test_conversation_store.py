import pytest
from sqlalchemy.exc import IntegrityError

from apexchat.core.errors import BusinessAlreadyBoundError, ConversationNotFoundError
from apexchat.fsm import states
from apexchat.models.conversation import Conversation
from apexchat.services.business_provisioner import BusinessProvisioner
from apexchat.services.conversation_store import ConversationStore
from tests.fixtures_data import BUSINESS_NAME, CUSTOMER_PHONE, build_test_database


def _create_conversation(database, phone=CUSTOMER_PHONE):
    db = database.session()
    try:
        with db.begin():
            return ConversationStore(db).create(phone)
    finally:
        db.close()


def _create_business(database, name=BUSINESS_NAME, phone=CUSTOMER_PHONE):
    db = database.session()
    try:
        with db.begin():
            return BusinessProvisioner(db).create(name, phone)
    finally:
        db.close()


def test_get_returns_none_for_unknown_phone():
    database = build_test_database()
    db = database.session()

    assert ConversationStore(db).get("+999") is None


def test_create_starts_in_initial_state_without_business():
    database = build_test_database()

    conversation = _create_conversation(database)

    assert conversation.id
    assert conversation.customer_phone == CUSTOMER_PHONE
    assert conversation.current_state == states.INITIAL
    assert conversation.business_id is None
    assert conversation.context == {}


def test_get_returns_same_conversation_on_repeated_calls():
    database = build_test_database()
    created = _create_conversation(database)
    db = database.session()
    store = ConversationStore(db)

    first = store.get(CUSTOMER_PHONE)
    second = store.get(CUSTOMER_PHONE, for_update=True)

    assert first.id == created.id
    assert second.id == created.id


def test_create_rejects_second_conversation_for_same_phone_and_keeps_transaction_usable():
    database = build_test_database()
    _create_conversation(database)
    db = database.session()

    with db.begin():
        store = ConversationStore(db)
        with pytest.raises(IntegrityError):
            store.create(CUSTOMER_PHONE)
        other = store.create("+2000")

    assert db.query(Conversation).count() == 2
    assert other.customer_phone == "+2000"


def test_update_moves_state_and_refreshes_last_message_at():
    database = build_test_database()
    conversation = _create_conversation(database)
    db = database.session()

    with db.begin():
        ConversationStore(db).update(conversation.id, states.AWAITING_BUSINESS_NAME)

    stored = database.session().get(Conversation, conversation.id)
    assert stored.current_state == states.AWAITING_BUSINESS_NAME
    assert stored.business_id is None
    assert stored.last_message_at is not None


def test_update_binds_business_once_and_keeps_it():
    database = build_test_database()
    conversation = _create_conversation(database)
    business = _create_business(database)
    db = database.session()

    with db.begin():
        store = ConversationStore(db)
        store.update(conversation.id, states.ONBOARDING_PRODUCTS_PROMPT, business.id)
        store.update(conversation.id, states.AWAITING_PRODUCT_UPLOAD)
        store.update(conversation.id, states.AWAITING_PRODUCT_UPLOAD, business.id)

    stored = database.session().get(Conversation, conversation.id)
    assert stored.business_id == business.id
    assert stored.current_state == states.AWAITING_PRODUCT_UPLOAD


def test_update_refuses_to_rebind_to_another_business():
    database = build_test_database()
    conversation = _create_conversation(database)
    business = _create_business(database)
    other = _create_business(database, name="Other Shop", phone="+3000")
    db = database.session()

    with db.begin():
        ConversationStore(db).update(conversation.id, states.ONBOARDING_PRODUCTS_PROMPT, business.id)

    with pytest.raises(BusinessAlreadyBoundError) as exc_info:
        with db.begin():
            ConversationStore(db).update(conversation.id, states.INITIAL, other.id)

    assert exc_info.value.business_id == business.id
    stored = database.session().get(Conversation, conversation.id)
    assert stored.business_id == business.id
    assert stored.current_state == states.ONBOARDING_PRODUCTS_PROMPT


def test_update_unknown_conversation_raises_not_found():
    database = build_test_database()
    db = database.session()

    with pytest.raises(ConversationNotFoundError):
        with db.begin():
            ConversationStore(db).update("missing-id", states.INITIAL)
