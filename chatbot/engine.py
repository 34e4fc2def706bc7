from __future__ import annotations

import logging
import re
from typing import Tuple

from chatbot.core.errors import EngineStateError
from chatbot.core.state import ConversationState, ConversationStep
from chatbot.countries.resolver import CountryResolver


logger = logging.getLogger(__name__)


WELCOME_MESSAGE = (
    "👋 Welcome to the Country Chatbot! I can provide information about countries around the world.\n"
    "Please enter a country name to get started."
)

COUNTRY_OPTIONS_MESSAGE = (
    "What would you like to know about {country}?\n"
    "\n"
    "A) Capital\n"
    "B) National Animal\n"
    "C) National Flower\n"
    "D) Population and Area\n"
    "E) All Information\n"
    "F) Choose another country\n"
    "G) Exit\n"
    "\n"
    'You can also toggle detailed mode by typing "detailed" or "simple".'
)

DETAILED_MODE_MESSAGE = "Detailed mode activated. You'll receive more comprehensive information about countries."
SIMPLE_MODE_MESSAGE = "Simple mode activated. You'll receive basic information about countries."
NEW_COUNTRY_MESSAGE = "Please enter a new country name."
FAREWELL_MESSAGE = "Thank you for using the Country Chatbot! Goodbye!"
ENDED_MESSAGE = "This conversation has ended. Start a new chat to look up another country."
RESTART_MESSAGE = "Let's start over. Please enter a country name."
ERROR_MESSAGE = "I encountered an error. Let's try again. Please enter a country name."

OPTION_PATTERN = re.compile(r"^[A-Ga-g]$")


def options_menu(country: str) -> str:
    return COUNTRY_OPTIONS_MESSAGE.format(country=country)


class DialogueEngine:
    """Rule-based conversation flow.

    WELCOME -> SELECT_COUNTRY -> CHOOSE_OPTION -> EXIT. ``help``,
    ``detailed`` and ``simple`` are honoured in every step after the welcome.
    ``respond`` never raises: failures reset the session to country
    selection with an apology.
    """

    def __init__(self, resolver: CountryResolver):
        self.resolver = resolver

    def respond(self, message: str, state: ConversationState) -> Tuple[str, ConversationState]:
        text = (message or "").strip()
        state.record_input(message)

        if state.is_first_interaction():
            state.current_step = ConversationStep.SELECT_COUNTRY
            return WELCOME_MESSAGE, state

        command = text.lower()
        if command == "help":
            return self._help(state), state
        if command == "detailed":
            state.detailed_mode = True
            return DETAILED_MODE_MESSAGE, state
        if command == "simple":
            state.detailed_mode = False
            return SIMPLE_MODE_MESSAGE, state

        step = state.current_step
        try:
            if step == ConversationStep.SELECT_COUNTRY:
                response = self._select_country(text, state)
            elif step == ConversationStep.CHOOSE_OPTION:
                response = self._choose_option(text, state)
            elif step == ConversationStep.EXIT:
                response = ENDED_MESSAGE
            else:
                logger.warning("Unexpected conversation step %r in session %s", step, state.session_id)
                state.reset_to_selection()
                response = RESTART_MESSAGE
        except Exception as exc:
            logger.exception("Error processing input for session %s: %s", state.session_id, exc)
            state.reset_to_selection()
            response = ERROR_MESSAGE

        return response, state

    def _select_country(self, text: str, state: ConversationState) -> str:
        if not text:
            return "Please enter a country name."

        matches = self.resolver.list_by_prefix(text)
        if not matches:
            return f"No country found matching '{text}'.\nPlease enter a valid country name."
        if len(matches) > 1:
            return f"Multiple matches found: {', '.join(matches)}.\nPlease be more specific."

        country = matches[0]
        state.select_country(country)
        return f"Selected {country}.\n\n{options_menu(country)}"

    def _choose_option(self, text: str, state: ConversationState) -> str:
        country = state.selected_country
        if not country:
            raise EngineStateError(f"No country selected in session {state.session_id}")

        if not OPTION_PATTERN.match(text):
            return f"Invalid option. Please select one of the options (A-G).\n\n{options_menu(country)}"

        resolver = self.resolver
        option = text.upper()
        if option == "A":
            answer = f"The capital of {country} is {resolver.get_property(country, 'capital')}."
        elif option == "B":
            answer = f"The national animal of {country} is {resolver.get_property(country, 'nationalAnimal')}."
        elif option == "C":
            answer = f"The national flower of {country} is {resolver.get_property(country, 'nationalFlower')}."
        elif option == "D":
            answer = (
                f"Population: {resolver.get_property(country, 'population')}\n"
                f"Area: {resolver.get_property(country, 'area')}"
            )
        elif option == "E":
            return f"{resolver.describe(country, state.detailed_mode)}\n\n{options_menu(country)}"
        elif option == "F":
            state.reset_to_selection()
            return NEW_COUNTRY_MESSAGE
        else:
            state.current_step = ConversationStep.EXIT
            return FAREWELL_MESSAGE

        return f"{answer}\n\n{options_menu(country)}"

    def _help(self, state: ConversationState) -> str:
        step = state.current_step
        if step == ConversationStep.SELECT_COUNTRY:
            return (
                "Please enter the name of a country you'd like to learn about. "
                "I'll tell you about its capital, national symbols, and more!"
            )
        if step == ConversationStep.CHOOSE_OPTION and state.selected_country:
            return (
                f"Please select an option (A-G) to learn about {state.selected_country}.\n\n"
                f"{options_menu(state.selected_country)}"
            )
        return "I can provide information about countries. Enter a country name to get started."
