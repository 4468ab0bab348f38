"""
Content-process fragment library.

Rules for web content child processes on macOS.  File access gets more
restrictive with each tier; the ``file`` and ``audio`` roles add their
addenda on top.  Versions are ``major * 100 + minor`` (10.13 → 1013,
11.0 → 1100).
"""

from __future__ import annotations

from sbprofile.core.constants import MAX_CONTENT_TESTING_READ_PATHS, NO_LOG_MODIFIER
from sbprofile.core.policy.model import (
    AliasSet,
    Compare,
    Defined,
    Filter,
    FragmentLibrary,
    Guarded,
    IsSet,
    IsTrue,
    Mode,
    ProcessRole,
    Ref,
    Regex,
    RequireAll,
    RequireAny,
    RequireNot,
    Symbol,
    Tier,
    allow,
    debug,
    deny,
    fragment,
    literal,
    named,
    regex,
    subpath,
    template,
    version_at_least,
    version_at_most,
    when,
)
from sbprofile.core.policy.template import regex_quote

VERSION = "MAC_OS_VERSION"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def names(kind: str, *values: str) -> tuple[Filter, ...]:
    """One filter per value: ``(kind "a") (kind "b") ...``."""
    return tuple(named(kind, v) for v in values)


def home_subpath(relative: str) -> Filter:
    return subpath(template(Ref("HOME_PATH"), relative))


def home_literal(relative: str) -> Filter:
    return literal(template(Ref("HOME_PATH"), relative))


def home_regex(relative_regex: str) -> Filter:
    return Filter("regex", (Regex(template("^", Ref("HOME_PATH", regex_quote=True), relative_regex)),))


def profile_subpath(relative: str) -> Filter:
    return subpath(template(Ref("PROFILE_DIR", required=True), relative))


def allow_shared_list(domain: str):
    return allow("file-read*", home_regex("/Library/Preferences/" + regex_quote(domain)))


def moz_deny(operation: str) -> Guarded:
    """Deny ``operation``, silently unless SHOULD_LOG is on."""
    return when(
        IsTrue("SHOULD_LOG"),
        deny(operation),
        otherwise=[deny(operation, modifiers=(NO_LOG_MODIFIER,))],
    )


FILE_MAP_EXECUTABLE = Defined("file-map-executable")
IOKIT_GET_PROPERTIES = Defined("iokit-get-properties")

SYSTEM_SUBPATHS = ("/System", "/usr/lib", "/Library/GPUBundles")

SYSCTL_NAMES = (
    "kern.ostype",
    "kern.osversion",
    "kern.osrelease",
    "kern.version",
    "kern.tcsm_available",
    "kern.tcsm_enable",
    "kern.hostname",
    "kern.hv_vmm_present",
    "kern.osproductversion",
    "hw.machine",
    "hw.model",
    "hw.ncpu",
    "hw.activecpu",
    "hw.byteorder",
    "hw.pagesize_compat",
    "hw.logicalcpu_max",
    "hw.physicalcpu_max",
    "hw.busfrequency_compat",
    "hw.busfrequency_max",
    "hw.cpufrequency",
    "hw.cpufrequency_compat",
    "hw.cpufrequency_max",
    "hw.l2cachesize",
    "hw.l3cachesize",
    "hw.cachelinesize",
    "hw.cachelinesize_compat",
    "hw.tbfrequency_compat",
    "hw.vectorunit",
    "hw.optional.sse2",
    "hw.optional.sse3",
    "hw.optional.sse4_1",
    "hw.optional.sse4_2",
    "hw.optional.avx1_0",
    "hw.optional.avx2_0",
    "machdep.cpu.vendor",
    "machdep.cpu.family",
    "machdep.cpu.model",
    "machdep.cpu.stepping",
    "debug.intel.gstLevelGST",
    "debug.intel.gstLoaderControl",
)

IOKIT_PROPERTIES = (
    "board-id",
    "class-code",
    "vendor-id",
    "device-id",
    "IODVDBundleName",
    "IOGLBundleName",
    "IOGVACodec",
    "IOGVAHEVCDecode",
    "IOGVAHEVCEncode",
    "IOGVAXDecode",
    "IOAVDAV1DecodeCapabilities",
    "IOPCITunnelled",
    "IOVARendererID",
    "MetalPluginName",
    "MetalPluginClassName",
)

SHARED_PREFERENCE_DOMAINS = (
    "kCFPreferencesAnyApplication",
    "com.apple.ATS",
    "com.apple.CoreGraphics",
    "com.apple.DownloadAssessment",
    "com.apple.HIToolbox",
    "com.apple.LaunchServices",
    "com.apple.MultitouchSupport",
    "com.apple.QTKit",
    "com.apple.ServicesMenu.Services",
    "com.apple.WebFoundation",
    "com.apple.avfoundation",
    "com.apple.coremedia",
    "com.apple.crypto",
    "com.apple.driver.AppleBluetoothMultitouch.mouse",
    "com.apple.driver.AppleBluetoothMultitouch.trackpad",
    "com.apple.driver.AppleHIDMouse",
    "com.apple.lookup.shared",
    "com.apple.mediaaccessibility",
    "com.apple.networkConnect",
    "com.apple.security",
    "com.apple.security.common",
    "com.apple.security.revocation",
    "com.apple.speech.voice.prefs",
    "com.apple.systemsound",
    "com.apple.universalaccess",
    "edu.mit.Kerberos",
    "pbs",
)

GRAPHICS_USER_CLIENTS = (
    "AGPMClient",
    "AppleGraphicsControlClient",
    "AppleGraphicsPolicyClient",
    "AppleIntelMEUserClient",
    "AppleMGPUPowerControlClient",
    "AppleSNBFBUserClient",
    "IOAccelerationUserClient",
    "IOFramebufferSharedUserClient",
    "IOHIDParamUserClient",
    "IOSurfaceRootUserClient",
    "IOSurfaceSendRight",
    "RootDomainUserClient",
)

LEGACY_SHM_NAMES = ("^/tmp/com.apple.csseed:", "^CFPBS:", "^AudioIO")


def legacy_shm():
    """POSIX shm names needed by 10.7 and older."""
    return when(
        version_at_most(1007),
        allow(
            "ipc-posix-shm-read-data",
            "ipc-posix-shm-write-data",
            *names("ipc-posix-name-regex", *LEGACY_SHM_NAMES),
        ),
    )


# ---------------------------------------------------------------------------
# Posture and base fragments
# ---------------------------------------------------------------------------

POSTURE = fragment("deny-default", moz_deny("default"), description="Deny everything by default")

BASE = (
    fragment(
        "extra-denies",
        when(version_at_least(1009), moz_deny("process-info*")),
        when(Defined("nvram*"), moz_deny("nvram*")),
        when(IOKIT_GET_PROPERTIES, moz_deny("iokit-get-properties")),
        when(FILE_MAP_EXECUTABLE, moz_deny("file-map-executable")),
        description="Operations not covered by deny default",
    ),
    fragment("debug-logging", debug("deny"), guard=IsTrue("SHOULD_LOG")),
    fragment(
        "system-paths",
        when(
            FILE_MAP_EXECUTABLE,
            when(
                IsTrue("IS_ROSETTA_TRANSLATED"),
                allow("file-map-executable", subpath("/private/var/db/oah")),
            ),
            allow(
                "file-map-executable",
                "file-read*",
                *(subpath(p) for p in SYSTEM_SUBPATHS),
                subpath(template(Ref("APP_PATH"))),
            ),
            otherwise=[
                allow(
                    "file-read*",
                    *(subpath(p) for p in SYSTEM_SUBPATHS),
                    subpath(template(Ref("APP_PATH"))),
                )
            ],
        ),
    ),
    fragment(
        "world-readable-system",
        allow(
            "file-read*",
            RequireAll(
                (
                    Filter("file-mode", (Mode(0o0004),)),
                    RequireAny(
                        (subpath("/Library/Filesystems/NetFSPlugins"), subpath("/usr/share"))
                    ),
                )
            ),
        ),
        allow("file-read-metadata", subpath("/")),
    ),
    fragment(
        "timezone",
        allow(
            "file-read*",
            subpath("/private/var/db/timezone"),
            subpath("/usr/share/zoneinfo"),
            subpath("/usr/share/zoneinfo.default"),
            literal("/private/etc/localtime"),
        ),
    ),
    fragment(
        "special-files",
        allow(
            "file-read*",
            literal("/dev/autofs_nowait"),
            literal("/dev/random"),
            literal("/dev/urandom"),
        ),
        allow("file-read*", "file-write-data", literal("/dev/null"), literal("/dev/zero")),
        allow("file-read*", "file-write-data", "file-ioctl", literal("/dev/dtracehelper")),
    ),
    fragment(
        "process-info",
        allow("process-info-pidinfo", "process-info-setcontrol", named("target", Symbol("self"))),
        guard=version_at_least(1009),
    ),
    fragment(
        "sysctl",
        # 10.9 has no sysctl-name filter, so reads are all or nothing there.
        when(
            version_at_most(1009),
            allow("sysctl-read"),
            otherwise=[
                allow(
                    "sysctl-read",
                    named("sysctl-name-regex", Regex(r"^sysctl\.")),
                    *names("sysctl-name", *SYSCTL_NAMES),
                )
            ],
        ),
        when(
            Compare(VERSION, ">", 1009),
            allow("sysctl-write", named("sysctl-name", "kern.tcsm_enable")),
        ),
    ),
    fragment("legacy-shm", legacy_shm()),
    fragment(
        "signals-and-devices",
        allow("signal", named("target", Symbol("self"))),
        allow("job-creation", literal("/Library/CoreMediaIO/Plug-Ins/DAL")),
        allow("iokit-set-properties", named("iokit-property", "IOAudioControlValue")),
    ),
    fragment(
        "crash-reporter",
        allow("mach-lookup", named("global-name", template(Ref("CRASH_PORT")))),
        guard=IsSet("CRASH_PORT"),
    ),
    fragment(
        "window-server",
        allow("mach-lookup", named("global-name", "com.apple.windowserver.active")),
        guard=IsTrue("HAS_WINDOW_SERVER"),
    ),
    fragment(
        "core-services",
        allow(
            "mach-lookup",
            *names(
                "global-name",
                "com.apple.system.opendirectoryd.libinfo",
                "com.apple.CoreServices.coreservicesd",
                "com.apple.coreservices.launchservicesd",
                "com.apple.lsd.mapdb",
            ),
        ),
        when(
            version_at_least(1013),
            allow(
                "mach-lookup",
                *names(
                    "xpc-service-name",
                    "com.apple.coremedia.videodecoder",
                    "com.apple.coremedia.videoencoder",
                ),
            ),
        ),
        when(
            Compare(VERSION, "=", 1009),
            allow("mach-lookup", named("global-name", "com.apple.xpcd")),
        ),
        allow("mach-lookup", named("global-name", "com.apple.trustd.agent")),
        allow("iokit-open", named("iokit-user-client-class", "IOHIDParamUserClient")),
    ),
    fragment(
        "iokit-properties",
        allow("iokit-get-properties", *names("iokit-property", *IOKIT_PROPERTIES)),
        when(
            version_at_least(1100),
            allow(
                "iokit-get-properties",
                *names(
                    "iokit-property",
                    "product-id",
                    "IORegistryEntryPropertyKeys",
                    "ean-storage-present",
                ),
                scope=named("iokit-registry-entry-class", "IOPlatformDevice"),
            ),
            allow(
                "iokit-get-properties",
                *names(
                    "iokit-property",
                    "housing-color",
                    "syscfg-erly-kbgs-allow-load",
                    "syscfg-erly-kbgs-data-class",
                    "syscfg-erly-kbgs-allow-unsealed",
                    "syscfg-v2-data",
                ),
                scope=named("iokit-registry-entry-class", "IOService"),
            ),
        ),
        guard=IOKIT_GET_PROPERTIES,
    ),
    fragment(
        "preferences",
        when(
            version_at_least(1008),
            allow("user-preference-read", named("preference-domain", "com.apple.HIToolbox")),
        ),
        allow("file-read-data", literal("/Library/Preferences/com.apple.HIToolbox.plist")),
        when(
            version_at_least(1008),
            allow("user-preference-read", named("preference-domain", "com.apple.ATS")),
            allow("user-preference-read", named("preference-domain", *SHARED_PREFERENCE_DOMAINS)),
        ),
    ),
    fragment(
        "global-preferences",
        allow(
            "file-read-data",
            literal("/Library/Preferences/.GlobalPreferences.plist"),
            home_literal("/Library/Preferences/.GlobalPreferences.plist"),
            home_regex(r"/Library/Preferences/ByHost/\.GlobalPreferences.*"),
            home_literal("/Library/Preferences/com.apple.universalaccess.plist"),
        ),
        allow(
            "mach-lookup",
            *names("global-name", "com.apple.cfprefsd.agent", "com.apple.cfprefsd.daemon"),
        ),
        when(
            version_at_most(1007),
            allow("ipc-posix-shm"),
            otherwise=[
                allow(
                    "ipc-posix-shm-read-data",
                    named("ipc-posix-name-regex", Regex(r"^apple\.cfprefs\..*")),
                )
            ],
        ),
    ),
    fragment(
        "user-resources",
        allow(
            "file-read*",
            subpath("/Library/ColorSync/Profiles"),
            subpath("/Library/Spelling"),
            literal("/"),
            literal("/private/tmp"),
            literal("/private/var/tmp"),
            home_literal("/.CFUserTextEncoding"),
            home_literal("/Library/Preferences/com.apple.DownloadAssessment.plist"),
            home_subpath("/Library/Colors"),
            home_subpath("/Library/ColorSync/Profiles"),
            home_subpath("/Library/Keyboard Layouts"),
            home_subpath("/Library/Input Methods"),
            home_subpath("/Library/Spelling"),
        ),
    ),
    fragment(
        "testing-read-paths",
        when(
            FILE_MAP_EXECUTABLE,
            *(
                allow("file-read*", "file-map-executable",
                      subpath(template(Ref(f"TESTING_READ_PATH{i}"))))
                for i in range(1, MAX_CONTENT_TESTING_READ_PATHS + 1)
            ),
            otherwise=[
                allow("file-read*", subpath(template(Ref(f"TESTING_READ_PATH{i}"))))
                for i in range(1, MAX_CONTENT_TESTING_READ_PATHS + 1)
            ],
        ),
        description="Extra read paths supplied by test harnesses",
    ),
    fragment(
        "font-registry",
        allow(
            "file-read*",
            subpath(template(Ref("DARWIN_USER_CACHE_DIR"), "/com.apple.FontRegistry")),
        ),
    ),
    fragment(
        "debug-write-dir",
        allow("file-write-data", subpath(template(Ref("DEBUG_WRITE_DIR")))),
        allow(
            "file-write-create",
            RequireAll(
                (
                    subpath(template(Ref("DEBUG_WRITE_DIR"))),
                    named("vnode-type", Symbol("REGULAR-FILE")),
                )
            ),
        ),
        guard=IsSet("DEBUG_WRITE_DIR"),
    ),
    fragment("plugin-container-prefs", allow_shared_list("org.mozilla.plugincontainer")),
    fragment(
        "extensions-dirs",
        allow(
            "file-read*",
            home_regex("/Library/Application Support/[^/]+/Extensions/"),
            regex("^/Library/Application Support/[^/]+/Extensions/"),
        ),
    ),
    fragment(
        "profile-extensions",
        allow("file-read*", profile_subpath("/extensions"), profile_subpath("/chrome")),
        guard=IsTrue("HAS_SANDBOXED_PROFILE"),
        description="Read access to $PROFILE/{extensions,chrome} at every tier",
    ),
    fragment(
        "graphics",
        when(
            version_at_least(1008),
            allow(
                "user-preference-read",
                *names("preference-domain", "com.apple.opengl", "com.nvidia.OpenGL"),
            ),
        ),
        allow("mach-lookup", named("global-name", "com.apple.cvmsServ")),
        when(
            version_at_least(1014),
            allow("mach-lookup", named("global-name", "com.apple.MTLCompilerService")),
        ),
        allow(
            "iokit-open",
            named("iokit-connection", "IOAccelerator"),
            *names("iokit-user-client-class", *GRAPHICS_USER_CLIENTS),
        ),
        allow(
            "iokit-open",
            *names("iokit-user-client-class", "NVDVDContextTesla", "Gen6DVDContext"),
        ),
    ),
    fragment(
        "fonts",
        allow(
            "file-read*",
            subpath("/Library/Fonts"),
            subpath("/Library/Application Support/Apple/Fonts"),
            home_subpath("/Library/Fonts"),
            named("extension", "com.apple.app-sandbox.read"),
        ),
        allow(
            "mach-lookup",
            *names("global-name", "com.apple.fonts", "com.apple.FontObjectsServer"),
        ),
        when(
            version_at_most(1011),
            allow("mach-lookup", named("global-name", "com.apple.FontServer")),
        ),
    ),
    fragment(
        "opengl-profiler",
        allow("mach-register", named("global-name-regex", Regex(r"^_oglprof_attach_<[0-9]+>$"))),
        guard=Defined("mach-register"),
    ),
    fragment(
        "media-accessibility",
        allow("file-read*", home_literal("/Library/Preferences/com.apple.mediaaccessibility.plist")),
        allow(
            "file-read*",
            "file-write*",
            home_literal("/Library/Preferences/com.apple.mediaaccessibility.public.plist"),
        ),
    ),
    fragment(
        "legacy-fonts",
        allow(
            "file-read*",
            regex(
                r"\.[oO][tT][fF]$",
                r"\.[tT][tT][fF]$",
                r"\.[tT][tT][cC]$",
                r"\.[oO][tT][cC]$",
                r"\.[dD][fF][oO][nN][tT]$",
            ),
            home_subpath("/Library/FontCollections"),
            home_subpath("/Library/Application Support/Adobe/CoreSync/plugins/livetype"),
            home_subpath("/Library/Application Support/FontAgent"),
            home_subpath("/Library/Extensis/UTC"),
            subpath("/Library/Extensis/UTC"),
            regex(r"\.fontvault/"),
            home_subpath("/FontExplorer X/Font Library"),
        ),
        guard=version_at_most(1011),
        description="Font extensions are not issued automatically on 10.11 and earlier",
    ),
    fragment(
        "audio-registrar",
        allow("mach-lookup", named("global-name", "com.apple.audio.AudioComponentRegistrar")),
        guard=version_at_least(1013),
    ),
)

# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

TIERS = {
    Tier.LEVEL_1: (
        fragment("tier-1-global-read", allow("file-read*"), description="Global read access"),
    ),
    Tier.LEVEL_2: (
        fragment(
            "tier-2-restricted-read",
            allow("file-read*", home_subpath("/Library/Caches/TemporaryItems")),
            when(
                IsTrue("HAS_SANDBOXED_PROFILE"),
                allow(
                    "file-read*",
                    RequireAll(
                        (
                            RequireNot(home_subpath("/Library")),
                            RequireNot(subpath(template(Ref("PROFILE_DIR", required=True)))),
                        )
                    ),
                ),
                otherwise=[allow("file-read*", RequireNot(home_subpath("/Library")))],
            ),
            description="Global read except ~/Library and the profile directory",
        ),
    ),
    # Level 3 adds nothing: only the shared base applies.
    Tier.LEVEL_3: (fragment("tier-3-no-global-read", description="No global read access"),),
}

# ---------------------------------------------------------------------------
# Role addenda
# ---------------------------------------------------------------------------

ADDENDA = {
    ProcessRole.DEFAULT: (),
    ProcessRole.FILE: (
        fragment(
            "file-addendum",
            allow("file-read*"),
            allow("mach-lookup", named("global-name", "com.apple.iconservices")),
            description="file:// content processes read everything and draw file icons",
        ),
    ),
    ProcessRole.AUDIO: (
        fragment(
            "audio-addendum",
            legacy_shm(),
            allow(
                "mach-lookup",
                *names("global-name", "com.apple.audio.coreaudiod", "com.apple.audio.audiohald"),
            ),
            allow("iokit-open", named("iokit-user-client-class", "IOAudioEngineUserClient")),
            allow("device-microphone"),
            description="Audio access for processes without audio remoting",
        ),
    ),
}

# On 10.7 every ipc-posix-shm variant is spelled ipc-posix-shm.
ALIASES = (
    AliasSet(
        version_at_most(1007),
        (
            ("ipc-posix-shm*", "ipc-posix-shm"),
            ("ipc-posix-shm-read-data", "ipc-posix-shm"),
            ("ipc-posix-shm-read*", "ipc-posix-shm"),
            ("ipc-posix-shm-write-data", "ipc-posix-shm"),
        ),
    ),
)


def build_content_library() -> FragmentLibrary:
    return FragmentLibrary(
        name="content",
        posture=POSTURE,
        base=BASE,
        tiers=TIERS,
        addenda=ADDENDA,
        aliases=ALIASES,
    )
