#!/usr/bin/env python3
"""
parse_eit - DVB EIT（Event Information Table）ファイルから番組情報をJSONで出力

DreamBoxなどの録画機が録画ファイルの横に保存する .eit ファイル（EITの1イベント分）を
読み込み、番組名・説明・拡張説明・放送時刻をJSONとして出力する。

使用方法:
python3 parse_eit.py FILE.eit [FILE2.eit ...] [-o out.json] [--components] [--debug]
"""

from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Dict, List, Optional, TextIO, Tuple, Union
import argparse
import codecs
import io
import math
import sys


# ==============================================================================
# Constants
# ==============================================================================

# ヘッダ: event_id(2) + start_time(5) + duration(3) + status/loop_length(2)
EIT_HEADER_SIZE = 12

SHORT_EVENT_DESCRIPTOR = 0x4D
EXTENDED_EVENT_DESCRIPTOR = 0x4E
COMPONENT_DESCRIPTOR = 0x50

# これ以上のサイズはEITファイルではないとみなす
MAX_RECORD_SIZE = 2000

# 1テキストフィールドあたりの変換後（UTF-8）最大バイト数
TEXT_BUFFER_SIZE = 2048

DEFAULT_CHARACTER_TABLE = "ISO-8859-1"

# ETSI EN 300 468 Annex A, Table A.3: 先頭1バイトで選択される文字コード表
CHARACTER_TABLES = {
    0x01: "ISO-8859-5",
    0x02: "ISO-8859-6",
    0x03: "ISO-8859-7",
    0x04: "ISO-8859-8",
    0x05: "ISO-8859-9",
    0x06: "ISO-8859-10",
    0x07: "ISO-8859-11",
    0x09: "ISO-8859-13",
    0x0A: "ISO-8859-14",
    0x0B: "ISO-8859-15",
    0x11: "ISO-10646",
    0x13: "GB2312",
    0x15: "ISO-10646/UTF8",
}

# Table A.4: 0x10 0x00 xx で動的に選択される ISO/IEC 8859 のパート
DYNAMIC_CHARACTER_TABLES = {
    0x01: "ISO-8859-1",
    0x02: "ISO-8859-2",
    0x03: "ISO-8859-3",
    0x04: "ISO-8859-4",
    0x05: "ISO-8859-5",
    0x06: "ISO-8859-6",
    0x07: "ISO-8859-7",
    0x08: "ISO-8859-8",
    0x09: "ISO-8859-9",
    0x0A: "ISO-8859-10",
    0x0B: "ISO-8859-11",
    0x0D: "ISO-8859-13",
    0x0E: "ISO-8859-14",
    0x0F: "ISO-8859-15",
}

DYNAMIC_TABLE_SELECTOR = 0x10

# 継続フラグメント先頭の制御コードを取り除かない表（0x11 はUCS-2の上位バイトになり得る）
UNSTRIPPABLE_TABLES = {"ISO-10646"}

# 文字コード表名 -> Pythonのコーデック名
PYTHON_CODECS = {
    "ISO-8859-1": "iso8859_1",
    "ISO-8859-2": "iso8859_2",
    "ISO-8859-3": "iso8859_3",
    "ISO-8859-4": "iso8859_4",
    "ISO-8859-5": "iso8859_5",
    "ISO-8859-6": "iso8859_6",
    "ISO-8859-7": "iso8859_7",
    "ISO-8859-8": "iso8859_8",
    "ISO-8859-9": "iso8859_9",
    "ISO-8859-10": "iso8859_10",
    "ISO-8859-11": "iso8859_11",
    "ISO-8859-13": "iso8859_13",
    "ISO-8859-14": "iso8859_14",
    "ISO-8859-15": "iso8859_15",
    "ISO-10646": "utf_16_be",  # Basic Multilingual Plane, 2バイト
    "GB2312": "gb2312",
    "ISO-10646/UTF8": "utf_8",
}


class RunningStatus(IntEnum):
    """running_status（EN 300 468 Table 6）"""
    UNDEFINED = 0
    NOT_RUNNING = 1
    STARTS_SOON = 2
    PAUSING = 3
    RUNNING = 4
    OFF_AIR = 5
    RESERVED_6 = 6
    RESERVED_7 = 7


# ==============================================================================
# Errors
# ==============================================================================

class EITDecodeError(Exception):
    """レコードのデコードを中断するエラーの基底クラス"""

    # parse_eit() が中断時点までの EITRecord をセットする
    record = None


class TruncatedError(EITDecodeError):
    """フィールドに必要なバイト数が残っていない"""


class InvalidEncodingSelectorError(EITDecodeError):
    """0x10 で始まる文字コード表選択の2バイト目が 0x00 でない"""


class InvalidSequenceError(EITDecodeError):
    """文字コード変換できないバイト列"""

    def __init__(self, offset: int, message: str):
        super().__init__(message)
        self.offset = offset


class OutputOverflowError(EITDecodeError):
    """変換後のテキストがバッファに収まらない"""


class UnsupportedFeatureError(EITDecodeError):
    """拡張形式イベント記述子のアイテム部（未実装）"""


class UnknownDescriptorTagError(EITDecodeError):
    """対応していない descriptor_tag の後にまだデータが残っている"""

    def __init__(self, tag: int, length: int, bytes_left: int):
        super().__init__(
            f"unknown descriptor_tag {tag:#x}, descriptor_length={length}, bytes left = {bytes_left}"
        )
        self.tag = tag
        self.length = length
        self.bytes_left = bytes_left


# ==============================================================================
# Data Classes
# ==============================================================================

@dataclass(frozen=True)
class Duration:
    """時:分:秒（BCDのまま範囲チェックはしない）"""
    hour: int
    minute: int
    second: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"


@dataclass(frozen=True)
class MJDDate:
    """MJDから求めた日付。year_offset は1900年からの年数"""
    year_offset: int
    month: int
    day: int

    @property
    def year(self) -> int:
        return self.year_offset + 1900

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return f"{self.year_offset}/{self.month}/{self.day}"


@dataclass(frozen=True)
class EITHeader:
    """EITのイベントヘッダ（固定長12バイト）"""
    event_id: int
    start_date: MJDDate
    start_time: Duration
    duration: Duration
    running_status: RunningStatus
    free_ca_mode: bool
    descriptors_length: int

    @property
    def start_time_text(self) -> str:
        return f"{self.start_date} {self.start_time}"


@dataclass
class ShortEvent:
    """短形式イベント記述子（0x4D）"""
    tag: int
    length: int
    number: int
    language_code: str
    event_name: str
    text: str

    def to_fields(self) -> Dict[str, Union[int, str]]:
        return {
            "iso_639_2_language_code": self.language_code,
            "event_name": self.event_name,
            "text": self.text,
        }


@dataclass
class ExtendedEventFragment:
    """拡張形式イベント記述子（0x4E）1つ分"""
    tag: int
    length: int
    descriptor_number: int
    last_descriptor_number: int
    language_code: str
    text: str


@dataclass
class ExtendedEvent:
    """descriptor_number 0..last を連結した論理的な拡張イベント"""
    language_code: str
    fragments: List[ExtendedEventFragment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(fragment.text for fragment in self.fragments)

    def to_fields(self) -> Dict[str, Union[int, str]]:
        return {
            "iso_639_2_language_code": self.language_code,
            "text": self.text,
        }


@dataclass
class Component:
    """コンポーネント記述子（0x50）。テキスト部は読み飛ばす"""
    tag: int
    length: int
    stream_content_ext: int
    stream_content: int
    component_type: int
    component_tag: int
    language_code: str

    def to_fields(self) -> Dict[str, Union[int, str]]:
        return {
            "stream_content_ext": self.stream_content_ext,
            "stream_content": self.stream_content,
            "component_type": self.component_type,
            "component_tag": self.component_tag,
            "iso_639_2_language_code": self.language_code,
        }


@dataclass
class EITRecord:
    """1ファイル分のデコード結果"""
    filename: str
    header: Optional[EITHeader] = None
    short_events: List[ShortEvent] = field(default_factory=list)
    extended_events: List[ExtendedEvent] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)
    pending_extended: Optional[ExtendedEvent] = None
    error: Optional[EITDecodeError] = None


# ==============================================================================
# ByteCursor
# ==============================================================================

class ByteCursor:
    """範囲チェック付きの読み出しカーソル"""

    def __init__(self, data: bytes, offset: int = 0, end: Optional[int] = None):
        self.data = data
        self.offset = offset
        self.end = len(data) if end is None else min(end, len(data))

    def remaining(self) -> int:
        return max(self.end - self.offset, 0)

    def at_end(self) -> bool:
        return self.offset >= self.end

    def peek(self, n: int) -> bytes:
        if n < 0 or n > self.remaining():
            raise TruncatedError(
                f"need {n} bytes at offset {self.offset}, only {self.remaining()} left"
            )
        return bytes(self.data[self.offset:self.offset + n])

    def advance(self, n: int) -> None:
        if n < 0 or n > self.remaining():
            raise TruncatedError(
                f"cannot skip {n} bytes at offset {self.offset}, only {self.remaining()} left"
            )
        self.offset += n

    def read(self, n: int) -> bytes:
        data = self.peek(n)
        self.offset += n
        return data

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u16(self) -> int:
        b = self.read(2)
        return (b[0] << 8) | b[1]

    def sub(self, n: int) -> "ByteCursor":
        """次のnバイトだけを読めるカーソルを返し、自身はその後ろまで進める"""
        self.peek(n)
        cursor = ByteCursor(self.data, self.offset, self.offset + n)
        self.offset += n
        return cursor


# ==============================================================================
# Date / Time
# ==============================================================================

def bcd_to_decimal(bcd: int) -> int:
    """BCD（Binary Coded Decimal）を10進数に変換"""
    return ((bcd >> 4) * 10) + (bcd & 0x0F)


def decode_duration(data: bytes) -> Duration:
    """
    BCD 6桁（3バイト）を時:分:秒に変換

    例: 01:45:30 は 0x014530

    Args:
        data: 3バイト以上のバイト列

    Returns:
        Duration: 99などの不正値もそのまま返す
    """
    if len(data) < 3:
        raise TruncatedError(f"duration needs 3 bytes, got {len(data)}")
    return Duration(bcd_to_decimal(data[0]), bcd_to_decimal(data[1]), bcd_to_decimal(data[2]))


def mjd_to_date(mjd: int) -> MJDDate:
    """MJD（Modified Julian Date）を年月日に変換（ETSI EN 300 468 Annex C）"""
    y_prime = math.floor((mjd - 15078.2) / 365.25)
    m_prime = math.floor((mjd - 14956.1 - math.floor(y_prime * 365.25)) / 30.6001)
    day = mjd - 14956 - math.floor(y_prime * 365.25) - math.floor(m_prime * 30.6001)

    k = 1 if m_prime in (14, 15) else 0
    return MJDDate(year_offset=y_prime + k, month=m_prime - 1 - k * 12, day=day)


def decode_start_time(data: bytes) -> Tuple[MJDDate, Duration]:
    """
    start_time（MJD 16bit + BCD時刻 24bit）を変換

    例: 93/10/13 12:45:00 は 0xC079124500

    Args:
        data: 5バイト以上のバイト列

    Returns:
        Tuple[MJDDate, Duration]: UTCのまま（タイムゾーン変換はしない）
    """
    if len(data) < 5:
        raise TruncatedError(f"start_time needs 5 bytes, got {len(data)}")
    mjd = (data[0] << 8) | data[1]
    return mjd_to_date(mjd), decode_duration(data[2:5])


# ==============================================================================
# Text Encoding
# ==============================================================================

def resolve_encoding(data: bytes) -> Tuple[str, int]:
    """
    テキストフィールド先頭の制御コードから文字コード表を判定（Annex A）

    Args:
        data: テキストフィールドのバイト列

    Returns:
        Tuple[str, int]: (文字コード表名, 消費した制御バイト数 0/1/3)
    """
    if not data or data[0] >= 0x20:
        return DEFAULT_CHARACTER_TABLE, 0

    first = data[0]
    if first != DYNAMIC_TABLE_SELECTOR:
        # 未定義の値は既定の表にフォールバック
        return CHARACTER_TABLES.get(first, DEFAULT_CHARACTER_TABLE), 1

    if len(data) < 3:
        raise TruncatedError(
            f"dynamically selected part of ISO/IEC 8859 but len = {len(data)} (<3)"
        )
    if data[1] != 0x00:
        raise InvalidEncodingSelectorError(
            f"dynamically selected part of ISO/IEC 8859: second byte is {data[1]:#04x}, expected 0x00"
        )
    return DYNAMIC_CHARACTER_TABLES.get(data[2], DEFAULT_CHARACTER_TABLE), 3


_JSON_ESCAPE_TABLE = {i: f"\\u{i:04x}" for i in range(0x20)}
_JSON_ESCAPE_TABLE[ord('"')] = '\\"'
_JSON_ESCAPE_TABLE[ord("\\")] = "\\\\"


def escape_json_text(text: str) -> str:
    """JSON文字列に埋め込めるようにエスケープ（制御文字は \\u00XX）"""
    return text.translate(_JSON_ESCAPE_TABLE)


class TextTranscoder:
    """
    DVBテキストをUnicodeに変換する

    拡張形式イベント記述子では、マルチバイト文字が記述子の境界で分割されることがある
    （実際の放送データで確認済み）。その場合は未変換の末尾バイトを保持しておき、
    次の継続フラグメントの先頭に付けて変換する。
    """

    def __init__(self, capacity: int = TEXT_BUFFER_SIZE):
        self.capacity = capacity
        self.reset()

    def reset(self) -> None:
        self.encoding: Optional[str] = None
        self.selector = b""
        self.carryover = b""

    def transcode(self, data: bytes, is_continuation: bool = False) -> str:
        """
        テキストフィールド（またはその継続部分）を変換

        Args:
            data: テキストのバイト列
            is_continuation: 直前のフィールドの続きならTrue

        Returns:
            str: 変換後のテキスト（エスケープ前）
        """
        data = bytes(data)
        if is_continuation and self.encoding is not None:
            if (self.selector and self.encoding not in UNSTRIPPABLE_TABLES
                    and data.startswith(self.selector)):
                # フラグメントごとに同じ制御コードを付ける送出局がある
                data = data[len(self.selector):]
            payload = self.carryover + data
        else:
            self.encoding, consumed = resolve_encoding(data)
            self.selector = data[:consumed]
            payload = data[consumed:]
        self.carryover = b""

        decoder = codecs.getincrementaldecoder(PYTHON_CODECS[self.encoding])(errors="strict")
        try:
            text = decoder.decode(payload, final=False)
        except UnicodeDecodeError as e:
            raise InvalidSequenceError(
                e.start,
                f"invalid multibyte sequence {payload[e.start:e.end]!r} at index {e.start} ({self.encoding})",
            ) from e

        # 不完全なマルチバイト列は次のフラグメントへ持ち越す
        self.carryover = decoder.getstate()[0]

        size = len(text.encode("utf-8"))
        if size > self.capacity:
            raise OutputOverflowError(f"output buffer too small ({size} > {self.capacity} bytes)")
        return text


# ==============================================================================
# Record Emitter
# ==============================================================================

class RecordEmitter:
    """
    1レコード分のJSONオブジェクトを書き出す

    メンバーは完成したものだけを1回の write() で書く。区切りのカンマは
    「前のメンバーが書き終わっていれば、次のメンバーの前に」付けるので、
    途中でエラーになっても末尾にカンマが残らない。
    終了時は必ずダミーの empty_structure を付けて閉じる。
    """

    PLACEHOLDER_KEY = "empty_structure"
    PLACEHOLDER_FIELDS = {"dummy": "nix"}

    def __init__(self, stream: TextIO, filename: str):
        self.stream = stream
        self.filename = filename
        self.committed = 0
        self.finalized = False
        self.opened = False

    def __enter__(self) -> "RecordEmitter":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.finalize()
        return False

    def open(self) -> None:
        if self.opened:
            return
        self.opened = True
        self.stream.write(" {")
        self.emit_value("filename", self.filename)

    @staticmethod
    def _format_value(value: Union[int, str]) -> str:
        if isinstance(value, str):
            return f'"{escape_json_text(value)}"'
        return str(int(value))

    def _commit(self, member: str) -> None:
        if self.finalized:
            raise RuntimeError("record already finalized")
        separator = ",\n" if self.committed else "\n"
        self.stream.write(separator + member)
        self.committed += 1

    def emit_value(self, key: str, value: Union[int, str]) -> None:
        self._commit(f'  "{escape_json_text(key)}": {self._format_value(value)}')

    def emit_entity(self, key: str, fields: Dict[str, Union[int, str]]) -> None:
        lines = [f'    "{escape_json_text(k)}": {self._format_value(v)}' for k, v in fields.items()]
        body = ",\n".join(lines)
        self._commit(f'  "{escape_json_text(key)}":\n  {{\n{body}\n  }}')

    def finalize(self) -> None:
        """ダミー構造を追加してオブジェクトを閉じる（何度呼んでもよい）"""
        if self.finalized:
            return
        self.open()
        self.emit_entity(self.PLACEHOLDER_KEY, self.PLACEHOLDER_FIELDS)
        self.stream.write("\n }")
        self.finalized = True


# ==============================================================================
# Descriptor Loop
# ==============================================================================

def _read_language_code(cursor: ByteCursor) -> str:
    # ISO_639_language_code (3 bytes)
    return cursor.read(3).decode("latin-1")


class DescriptorLoop:
    """ヘッダに続く記述子ループ（タグごとにハンドラを呼ぶ）"""

    def __init__(self, cursor: ByteCursor, transcoder: TextTranscoder, record: EITRecord,
                 include_components: bool = False, debug: bool = False):
        self.cursor = cursor
        self.transcoder = transcoder
        self.record = record
        self.include_components = include_components
        self.debug = debug
        self.short_event_count = 0
        self.extended_event_count = 0
        self.component_count = 0
        self.pending_extended: Optional[ExtendedEvent] = None

    def run(self, emitter: RecordEmitter) -> None:
        try:
            while not self.cursor.at_end():
                if self.cursor.remaining() < 2:
                    raise TruncatedError(
                        f"descriptor header needs 2 bytes at offset {self.cursor.offset}, "
                        f"only {self.cursor.remaining()} left"
                    )
                desc_tag = self.cursor.read_u8()
                desc_length = self.cursor.read_u8()

                if self.debug:
                    print(f"descriptor_tag = {desc_tag:#x}, descriptor_length = {desc_length}, "
                          f"bytes left = {self.cursor.remaining()}", file=sys.stderr)

                handler = self.HANDLERS.get(desc_tag)
                if handler is None:
                    bytes_left = self.cursor.remaining()
                    if bytes_left > 0:
                        raise UnknownDescriptorTagError(desc_tag, desc_length, bytes_left)
                    break

                payload = self.cursor.sub(desc_length)
                handler(self, desc_tag, desc_length, payload, emitter)
        finally:
            self.record.pending_extended = self.pending_extended

    def _handle_short_event(self, tag: int, length: int, payload: ByteCursor,
                            emitter: RecordEmitter) -> None:
        language_code = _read_language_code(payload)

        event_name_length = payload.read_u8()
        event_name = self.transcoder.transcode(payload.read(event_name_length))

        text_length = payload.read_u8()
        text = self.transcoder.transcode(payload.read(text_length))

        # 同じタグが複数回来ることがあるので上書きせず番号を付ける
        self.short_event_count += 1
        event = ShortEvent(tag, length, self.short_event_count, language_code, event_name, text)
        emitter.emit_entity(f"short_event_descriptor_{event.number}", event.to_fields())
        self.record.short_events.append(event)

    def _handle_extended_event(self, tag: int, length: int, payload: ByteCursor,
                               emitter: RecordEmitter) -> None:
        numbers = payload.read_u8()
        descriptor_number = numbers >> 4
        last_descriptor_number = numbers & 0x0F

        # 継続フラグメントでも固定レイアウトなので3バイト読む
        language_code = _read_language_code(payload)

        length_of_items = payload.read_u8()
        if length_of_items > 0:
            raise UnsupportedFeatureError(
                f"extended_event_descriptor with items (length_of_items = {length_of_items}) "
                "is not implemented"
            )

        text_length = payload.read_u8()
        is_continuation = descriptor_number > 0 and self.pending_extended is not None
        text = self.transcoder.transcode(payload.read(text_length), is_continuation)

        if not is_continuation:
            self.pending_extended = ExtendedEvent(language_code)
        self.pending_extended.fragments.append(ExtendedEventFragment(
            tag, length, descriptor_number, last_descriptor_number, language_code, text
        ))

        if descriptor_number == last_descriptor_number:
            event = self.pending_extended
            self.pending_extended = None
            self.extended_event_count += 1
            key = "extended_event_descriptor"
            if self.extended_event_count > 1:
                key += f"_{self.extended_event_count}"
            emitter.emit_entity(key, event.to_fields())
            self.record.extended_events.append(event)

    def _handle_component(self, tag: int, length: int, payload: ByteCursor,
                          emitter: RecordEmitter) -> None:
        if length < 6:
            raise TruncatedError(f"component_descriptor needs 6 bytes, descriptor_length = {length}")

        b = payload.read_u8()
        component_type = payload.read_u8()
        component_tag = payload.read_u8()
        language_code = _read_language_code(payload)

        # テキスト部（length - 6 バイト）は今のところ出力しない
        payload.advance(payload.remaining())

        component = Component(tag, length, b >> 4, b & 0x0F, component_type, component_tag,
                              language_code)
        self.component_count += 1
        if self.include_components:
            emitter.emit_entity(f"component_descriptor_{self.component_count}", component.to_fields())
        self.record.components.append(component)

    HANDLERS = {
        SHORT_EVENT_DESCRIPTOR: _handle_short_event,
        EXTENDED_EVENT_DESCRIPTOR: _handle_extended_event,
        COMPONENT_DESCRIPTOR: _handle_component,
    }


# ==============================================================================
# Record Parser
# ==============================================================================

def parse_header(cursor: ByteCursor) -> EITHeader:
    """
    EITイベントヘッダ（EN 300 468 5.2.4）をパース

    Args:
        cursor: レコード先頭を指すカーソル

    Returns:
        EITHeader: ヘッダ情報
    """
    event_id = cursor.read_u16()
    start_date, start_time = decode_start_time(cursor.read(5))
    duration = decode_duration(cursor.read(3))

    flags = cursor.read_u8()
    running_status = RunningStatus(flags >> 5)
    free_ca_mode = bool((flags >> 4) & 0x01)
    descriptors_length = ((flags & 0x0F) << 8) | cursor.read_u8()

    return EITHeader(event_id, start_date, start_time, duration, running_status, free_ca_mode,
                     descriptors_length)


def parse_eit(data: bytes, stream: TextIO, filename: str = "",
              include_components: bool = False, debug: bool = False,
              text_capacity: int = TEXT_BUFFER_SIZE) -> EITRecord:
    """
    EITレコード1件をデコードしてJSONオブジェクトを stream に書き出す

    デコード中にエラーが起きても、それまでに書いた内容とダミー構造で
    JSONを閉じてから例外を送出する（例外の record 属性に途中結果が入る）。

    Args:
        data: EITファイルの中身
        stream: 出力先
        filename: 出力の "filename" に入れる文字列
        include_components: コンポーネント記述子も出力する
        debug: 記述子ごとのトレースを標準エラーに出す
        text_capacity: 1テキストフィールドの変換後の最大バイト数

    Returns:
        EITRecord: デコード結果
    """
    record = EITRecord(filename=filename)
    cursor = ByteCursor(data)

    try:
        with RecordEmitter(stream, filename) as emitter:
            header = parse_header(cursor)
            record.header = header

            emitter.emit_value("event_id", header.event_id)
            emitter.emit_value("start_time", header.start_time_text)
            emitter.emit_value("duration", str(header.duration))
            emitter.emit_value("running_status", int(header.running_status))
            emitter.emit_value("free_CA_mode", int(header.free_ca_mode))

            end = min(EIT_HEADER_SIZE + header.descriptors_length, len(data))
            loop = DescriptorLoop(ByteCursor(data, cursor.offset, end), TextTranscoder(text_capacity),
                                  record,
                                  include_components=include_components, debug=debug)
            loop.run(emitter)
    except EITDecodeError as e:
        record.error = e
        e.record = record
        raise

    return record


def dump_eit(data: bytes, filename: str = "", include_components: bool = False,
             debug: bool = False, text_capacity: int = TEXT_BUFFER_SIZE) -> Tuple[str, EITRecord]:
    """JSON文字列とデコード結果を返す（デコードエラーは record.error に入る）"""
    out = io.StringIO()
    try:
        record = parse_eit(data, out, filename, include_components=include_components, debug=debug,
                           text_capacity=text_capacity)
    except EITDecodeError as e:
        record = e.record
    return out.getvalue(), record


# ==============================================================================
# Main
# ==============================================================================

def read_eit_file(path: str) -> bytes:
    """EITファイルを読み込む（MAX_RECORD_SIZE 以上ならEITではないとみなす）"""
    with open(path, 'rb') as f:
        data = f.read(MAX_RECORD_SIZE)
    if len(data) >= MAX_RECORD_SIZE:
        raise ValueError(f"buffer too small ({MAX_RECORD_SIZE} bytes), possibly not an EIT")
    return data


def dump_files(paths: List[str], stream: TextIO, include_components: bool = False,
               debug: bool = False) -> bool:
    """
    複数のEITファイルを順にJSONで書き出す

    2ファイル以上なら配列で囲む。デコードに失敗したファイルも閉じたJSONを出力し、
    次のファイルへ進む。

    Returns:
        bool: すべて正常にデコードできればTrue
    """
    ok = True
    written = 0
    wrap = len(paths) > 1

    if wrap:
        stream.write("[\n")

    for path in paths:
        try:
            data = read_eit_file(path)
        except (OSError, ValueError) as e:
            print(f"Error: {path}: {e}", file=sys.stderr)
            ok = False
            continue

        if written:
            stream.write(",\n")
        try:
            parse_eit(data, stream, path, include_components=include_components, debug=debug)
        except EITDecodeError as e:
            print(f"Error: {path}: {e}", file=sys.stderr)
            ok = False
        written += 1

    if written:
        stream.write("\n")
    if wrap:
        stream.write("]\n")
    return ok


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="parse_eit - Dump DVB EIT (Event Information Table) files as JSON"
    )
    parser.add_argument("files", nargs="+", help="Input EIT file(s)")
    parser.add_argument("-o", "--output", help="Output JSON file (default: stdout)")
    parser.add_argument("--components", action="store_true", help="Also output component descriptors")
    parser.add_argument("--debug", action="store_true", help="Trace descriptors to stderr")

    args = parser.parse_args(argv)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            ok = dump_files(args.files, f, include_components=args.components, debug=args.debug)
        print(f"JSON output written to: {args.output}")
    else:
        ok = dump_files(args.files, sys.stdout, include_components=args.components, debug=args.debug)

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
