# Streamcast Player
#
# Keeps every display client on the same shared bundle (config, playlist,
# schedules) and plays whichever content item is active right now.
#
# Import directly from the specific module, not from this __init__.py.
