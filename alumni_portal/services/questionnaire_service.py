"""QUESTIONNAIRE SERVICE"""

import logging

from alumni_portal.errors import Error, NotFound
from alumni_portal.services.reconciliation import PROFILES_TABLE, QUESTIONNAIRE_TABLE
from alumni_portal.utils.ledger import QUESTIONNAIRE_COMPLETED

logger = logging.getLogger()


class QuestionnaireService:
    def __init__(self, profile_store, ledger):
        self._store = profile_store
        self._ledger = ledger

    def answers_for(self, subject_id):
        try:
            return self._store.select_one(QUESTIONNAIRE_TABLE, {"user_id": subject_id})
        except NotFound:
            return None

    def submit(self, subject_id, answers):
        """Store the answers and mark the profile as done with the questionnaire."""
        row = answers.answers_row(subject_id)
        if self.answers_for(subject_id):
            values = {k: v for k, v in row.items() if k != "user_id"}
            self._store.update(QUESTIONNAIRE_TABLE, values, {"user_id": subject_id})
        else:
            self._store.insert(QUESTIONNAIRE_TABLE, row)
        logger.info(f"[SERVICE]: Stored questionnaire answers for {subject_id}")

        try:
            self._store.update(
                PROFILES_TABLE,
                {
                    "location": answers.location.format(),
                    "questionnaire_completed": True,
                },
                {"id": subject_id},
            )
        except Error as e:
            # The answers row alone still counts as completion
            logger.warning(f"[SERVICE]: Could not update profile location: {e}")

        self._ledger.put(QUESTIONNAIRE_COMPLETED, "1", subject_id)
        return row
