"""SMS receptionist — an appointment-booking assistant for a home-service business.

Architecture Overview
=====================

Customers text the business number; Twilio posts each message to a webhook
and the reply goes back out through the Twilio REST API.  In between sits a
small **LangGraph** state machine (``dispatcher.py``):

1. **decide** — Claude (via LangChain) sees the system prompt, the
   customer's recent history and the new text, and either replies in prose
   or picks one tool.
2. **execute_tool** — runs the tool against Google Calendar, the Google
   Sheets lead sheet or Twilio.
3. **record / send / escalate** — stores the reply, texts it, and sends a
   "someone will follow up" message if anything failed.

Key Design Decisions
--------------------
- **Tools**: ``lookup_availability``, ``book_appointment``, ``save_lead``,
  ``send_message``.  Each has a pydantic argument model; malformed model
  arguments become a tool failure, never a crash.
- **Slots**: computed locally from Calendar free/busy data, hourly within
  09:00–17:00 on weekdays (``scheduling/slots.py``).
- **Holds**: offered slots are held per customer for 10 minutes so "Book 1"
  can be resolved; a background thread sweeps expired holds.
- **Memory**: history (last 20 turns) and holds live in process memory
  behind ``ConversationStore``; a restart forgets them.
- **Always acknowledge**: the webhook returns 200 whatever happens, so
  Twilio never resends a message we already handled.

Package Structure
-----------------
- ``sms_receptionist/dispatcher.py`` — the per-message state machine
- ``sms_receptionist/scheduling/`` — free-slot computation
- ``sms_receptionist/services/`` — store, model, Calendar, Sheets, Twilio, metrics
- ``sms_receptionist/tools/`` — tool argument models and schemas
- ``sms_receptionist/api/`` — FastAPI routes, signature check, schemas
- ``sms_receptionist/server.py`` — FastAPI application
- ``sms_receptionist/main.py`` — CLI chat interface
"""
