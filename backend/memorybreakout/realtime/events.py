# Inbound Socket.IO event names.
ROOM_CREATE = "room:create"
ROOM_QUICK_JOIN = "room:quick_join"
ROOM_JOIN = "room:join"
ROOM_LEAVE = "room:leave"
HOST_START = "host:start"
HOST_CANCEL = "host:cancel"
LOBBY_SET_READY = "lobby:set_ready"
GAME_ASSETS_LOADED = "game:assets_loaded"
GAME_SELECT = "game:select"
GAME_PRESS = "game:press"
THEMES_LIST = "themes:list"
ADMIN_FORCE_ACTIVATE = "admin:force_activate"
ADMIN_FORCE_RESET = "admin:force_reset"

# Outbound events emitted by the handlers themselves; the state machine emits the rest.
ROOM_ERROR = "room:error"
THEMES_DATA = "themes:data"
