"""Parser for predicate expressions."""

from functools import lru_cache

from .ast import BinaryOp, FunctionCall, ListLiteral, Literal, Node, UnaryOp, Variable
from .exceptions import RuleSyntaxError
from .lexer import Lexer, Token, TokenType

COMPARISON_OPERATORS = {
    TokenType.EQ: "==",
    TokenType.NEQ: "!=",
    TokenType.LT: "<",
    TokenType.GT: ">",
    TokenType.LTE: "<=",
    TokenType.GTE: ">=",
    TokenType.IN: "in",
}

LITERAL_TOKENS = (
    TokenType.INTEGER,
    TokenType.FLOAT,
    TokenType.STRING,
    TokenType.BOOLEAN,
    TokenType.NULL,
)


class Parser:
    """Recursive descent parser for predicate expressions.

    Precedence, lowest first: ``or``, ``and``, ``not``, comparison, atom.
    """

    def __init__(self, lexer: Lexer):
        self.lexer = lexer
        self.current_token: Token = self.lexer.get_next_token()

    def error(self, message: str) -> None:
        raise RuleSyntaxError(message, self.current_token.position)

    def consume(self, token_type: TokenType) -> None:
        """Consume the current token if it matches the expected type."""
        if self.current_token.type == token_type:
            self.current_token = self.lexer.get_next_token()
        else:
            self.error(f"Expected {token_type.name}, found {self.current_token.type.name}")

    def parse(self) -> Node:
        """Parse the entire expression."""
        if self.current_token.type == TokenType.EOF:
            self.error("Empty expression")
        node = self.expression()
        if self.current_token.type != TokenType.EOF:
            self.error("Unexpected token after expression")
        return node

    def expression(self) -> Node:
        node = self.term()
        while self.current_token.type == TokenType.OR:
            self.consume(TokenType.OR)
            node = BinaryOp(left=node, operator="or", right=self.term())
        return node

    def term(self) -> Node:
        node = self.factor()
        while self.current_token.type == TokenType.AND:
            self.consume(TokenType.AND)
            node = BinaryOp(left=node, operator="and", right=self.factor())
        return node

    def factor(self) -> Node:
        if self.current_token.type == TokenType.NOT:
            self.consume(TokenType.NOT)
            return UnaryOp(operator="not", operand=self.factor())
        return self.comparison()

    def comparison(self) -> Node:
        node = self.atom()

        operator = COMPARISON_OPERATORS.get(self.current_token.type)
        if operator is not None:
            self.consume(self.current_token.type)
            node = BinaryOp(left=node, operator=operator, right=self.atom())

        return node

    def atom(self) -> Node:
        """Parse basic units: literals, lists, variables, calls, parentheses."""
        token = self.current_token

        if token.type in LITERAL_TOKENS:
            self.consume(token.type)
            return Literal(token.value)

        if token.type == TokenType.LPAREN:
            self.consume(TokenType.LPAREN)
            node = self.expression()
            self.consume(TokenType.RPAREN)
            return node

        if token.type == TokenType.LBRACKET:
            return self._list()

        if token.type == TokenType.IDENTIFIER:
            name = str(token.value)
            self.consume(TokenType.IDENTIFIER)
            if self.current_token.type == TokenType.LPAREN:
                return self._function_call(name)
            return Variable(name)

        self.error(f"Unexpected token: {token.type.name}")
        raise AssertionError("unreachable")

    def _arguments(self, closing: TokenType) -> list[Node]:
        items: list[Node] = []
        if self.current_token.type != closing:
            items.append(self.expression())
            while self.current_token.type == TokenType.COMMA:
                self.consume(TokenType.COMMA)
                items.append(self.expression())
        self.consume(closing)
        return items

    def _function_call(self, name: str) -> Node:
        self.consume(TokenType.LPAREN)
        return FunctionCall(name, self._arguments(TokenType.RPAREN))

    def _list(self) -> Node:
        self.consume(TokenType.LBRACKET)
        return ListLiteral(self._arguments(TokenType.RBRACKET))


@lru_cache(maxsize=512)
def parse_expression(expression: str) -> Node:
    """Parse an expression string, caching the tree.

    Trees are treated as read-only by every consumer, so sharing them
    between rules with identical predicates is safe.
    """
    return Parser(Lexer(expression)).parse()
