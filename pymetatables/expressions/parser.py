# Licensed to the Apache Software Foundation (ASF) under one
# or more contributor license agreements.  See the NOTICE file
# distributed with this work for additional information
# regarding copyright ownership.  The ASF licenses this file
# to you under the Apache License, Version 2.0 (the
# "License"); you may not use this file except in compliance
# with the License.  You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY
# KIND, either express or implied.  See the License for the
# specific language governing permissions and limitations
# under the License.
"""Parse row filters written as text, e.g. ``partition.id < 2 or record_count = 1``."""

import re
from decimal import Decimal
from typing import Any

from pyparsing import (
    CaselessKeyword,
    DelimitedList,
    Group,
    MatchFirst,
    OpAssoc,
    ParserElement,
    ParseResults,
    QuotedString,
    Suppress,
    Word,
    alphanums,
    alphas,
    infix_notation,
    one_of,
    pyparsing_common as common,
)

from pymetatables.expressions import (
    AlwaysFalse,
    AlwaysTrue,
    And,
    BooleanExpression,
    EqualTo,
    GreaterThan,
    GreaterThanOrEqual,
    In,
    IsNull,
    LessThan,
    LessThanOrEqual,
    Not,
    NotEqualTo,
    NotIn,
    NotNull,
    NotStartsWith,
    Or,
    Reference,
    StartsWith,
)

ParserElement.enable_packrat()

AND = CaselessKeyword("and")
OR = CaselessKeyword("or")
NOT = CaselessKeyword("not")
IS = CaselessKeyword("is")
IN = CaselessKeyword("in")
NULL = CaselessKeyword("null")
LIKE = CaselessKeyword("like")
TRUE = CaselessKeyword("true")
FALSE = CaselessKeyword("false")

reserved = MatchFirst([AND, OR, NOT, IS, IN, NULL, LIKE, TRUE, FALSE])

identifier = ~reserved + Word(alphas + "_", alphanums + "_$")
column = DelimitedList(identifier, delim=".", combine=True).set_results_name("column")


@column.set_parse_action
def _(result: ParseResults) -> Reference:
    return Reference(result[0])


boolean = (TRUE | FALSE).set_results_name("boolean")
string = QuotedString("'", esc_quote="''").set_results_name("raw_quoted_string")
decimal = common.real().set_results_name("decimal")
integer = common.signed_integer().set_results_name("integer")
literal = (boolean | string | decimal | integer).set_results_name("literal")
literal_set = Group(DelimitedList(string) | DelimitedList(decimal) | DelimitedList(integer) | DelimitedList(boolean)).set_results_name(
    "literal_set"
)


@boolean.set_parse_action
def _(result: ParseResults) -> bool:
    return result.boolean.lower() == "true"


@decimal.set_parse_action
def _(result: ParseResults) -> Decimal:
    return Decimal(str(result.decimal))


comparison_op = one_of(["<", "<=", ">", ">=", "=", "==", "!=", "<>"], caseless=True).set_results_name("op")
left_ref = column + comparison_op + literal
right_ref = literal + comparison_op + column
comparison = left_ref | right_ref


@left_ref.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return _comparison(result.op, result.column, result.literal)


@right_ref.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    # Flip the operator so the column stays on the left
    flipped = {"<": ">", "<=": ">=", ">": "<", ">=": "<="}.get(result.op, result.op)
    return _comparison(flipped, result.column, result.literal)


def _comparison(op: str, term: Reference, value: Any) -> BooleanExpression:
    if op == "<":
        return LessThan(term, value)
    elif op == "<=":
        return LessThanOrEqual(term, value)
    elif op == ">":
        return GreaterThan(term, value)
    elif op == ">=":
        return GreaterThanOrEqual(term, value)
    elif op in ("=", "=="):
        return EqualTo(term, value)
    else:
        return NotEqualTo(term, value)


is_null = column + IS + NULL
not_null = column + IS + NOT + NULL
null_check = not_null | is_null


@is_null.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return IsNull(result.column)


@not_null.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return NotNull(result.column)


in_check = column + IN + Suppress("(") + literal_set + Suppress(")")
not_in_check = column + NOT + IN + Suppress("(") + literal_set + Suppress(")")
set_check = in_check | not_in_check


@in_check.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return In(result.column, result.literal_set)


@not_in_check.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return NotIn(result.column, result.literal_set)


starts_with = column + LIKE + string
not_starts_with = column + NOT + LIKE + string
starts_check = starts_with | not_starts_with


def _prefix(pattern: str) -> str:
    """Only a single trailing wildcard can be pushed down as a prefix match."""
    match = re.fullmatch(r"([^%]*)%", pattern)
    if match is None:
        raise ValueError(f"LIKE expressions only support a trailing wildcard: {pattern}")
    return match.group(1)


@starts_with.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return StartsWith(result.column, _prefix(result.raw_quoted_string))


@not_starts_with.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return NotStartsWith(result.column, _prefix(result.raw_quoted_string))


constant = (TRUE | FALSE).copy()


@constant.set_parse_action
def _(result: ParseResults) -> BooleanExpression:
    return AlwaysTrue() if result[0].lower() == "true" else AlwaysFalse()


predicate = (comparison | null_check | set_check | starts_check | constant).set_results_name("predicate")


def handle_not(result: ParseResults) -> Not:
    return Not(result[0][0])


def handle_and(result: ParseResults) -> And:
    return And(*result[0])


def handle_or(result: ParseResults) -> Or:
    return Or(*result[0])


boolean_expression = infix_notation(
    predicate,
    [
        (Suppress(NOT), 1, OpAssoc.RIGHT, handle_not),
        (Suppress(AND), 2, OpAssoc.LEFT, handle_and),
        (Suppress(OR), 2, OpAssoc.LEFT, handle_or),
    ],
)


def parse(expr: str) -> BooleanExpression:
    """Parse a boolean expression."""
    return boolean_expression.parse_string(expr, parse_all=True)[0]
