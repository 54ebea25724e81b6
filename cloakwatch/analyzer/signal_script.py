"""Init script injected before navigation to record evasive page behaviour."""

WORKER_BOMB_THRESHOLD = 5
FREEZE_DRIFT_MS = 1000
TICK_INTERVAL_MS = 250

# __CARRIER__ is replaced with a per-session random global name.
SIGNAL_SCRIPT_TEMPLATE = """
(() => {
    const carrier = '__CARRIER__';
    if (window[carrier]) return;
    const state = {
        fullscreenRequested: false,
        keyboardLockRequested: false,
        pointerLockRequested: false,
        workerCount: 0,
        workerBomb: false,
        pageLoadFrozen: false,
    };
    Object.defineProperty(window, carrier, {
        value: state, enumerable: false, configurable: false, writable: false
    });

    const wrap = (owner, name, flag) => {
        if (!owner) return;
        const native = owner[name];
        if (typeof native !== 'function') return;
        owner[name] = function(...args) {
            state[flag] = true;
            return native.apply(this, args);
        };
    };

    const elementProto = window.Element && Element.prototype;
    wrap(elementProto, 'requestFullscreen', 'fullscreenRequested');
    wrap(elementProto, 'webkitRequestFullscreen', 'fullscreenRequested');
    wrap(elementProto, 'webkitRequestFullScreen', 'fullscreenRequested');
    wrap(elementProto, 'mozRequestFullScreen', 'fullscreenRequested');
    wrap(elementProto, 'msRequestFullscreen', 'fullscreenRequested');
    wrap(elementProto, 'requestPointerLock', 'pointerLockRequested');
    if (navigator.keyboard) {
        wrap(navigator.keyboard, 'lock', 'keyboardLockRequested');
    }

    const countWorkers = (name) => {
        const Native = window[name];
        if (typeof Native !== 'function') return;
        const Counted = function(...args) {
            state.workerCount += 1;
            if (state.workerCount >= __WORKER_LIMIT__) state.workerBomb = true;
            return new Native(...args);
        };
        Counted.prototype = Native.prototype;
        window[name] = Counted;
    };
    countWorkers('Worker');
    countWorkers('SharedWorker');

    let expected = Date.now() + __TICK_MS__;
    setInterval(() => {
        const now = Date.now();
        if (now - expected > __DRIFT_MS__) state.pageLoadFrozen = true;
        expected = now + __TICK_MS__;
    }, __TICK_MS__);
})();
"""


def render_signal_script(carrier: str) -> str:
    return (
        SIGNAL_SCRIPT_TEMPLATE.replace("__CARRIER__", carrier)
        .replace("__WORKER_LIMIT__", str(WORKER_BOMB_THRESHOLD))
        .replace("__TICK_MS__", str(TICK_INTERVAL_MS))
        .replace("__DRIFT_MS__", str(FREEZE_DRIFT_MS))
    )
