"""Ordered wizard steps for each workflow variant.

Each group is consumed by the step gate in definition order, so the order of
the ``State`` attributes below is the order the user walks through.
"""

from aiogram.fsm.state import State, StatesGroup


class CompositeSteps(StatesGroup):
    """Steps for the garment + model + background composite (flat lay) flow."""
    
    # User uploads front/back shots of the top and bottom garments
    upload_garments = State()
    
    # User picks the model who will wear the garments
    select_model = State()
    
    # User picks the backdrop
    select_background = State()
    
    # User reviews, adds instructions and generates
    preview_generate = State()


class OnModelSteps(StatesGroup):
    """Steps for the garment-on-a-person flow."""
    
    upload_photos = State()
    select_model = State()
    
    # Optional: without a backdrop the original background is kept
    select_background = State()
    
    preview_generate = State()


class BackgroundSwapSteps(StatesGroup):
    """Steps for the backdrop-swap flow."""
    
    upload_photos = State()
    select_background = State()
    preview_generate = State()
